"""Shared fixtures for navigator_credstash tests."""
import secrets

import pytest

from navigator_credstash import (
    CredStash,
    EnvelopeCipher,
    LocalKeyService,
    MemoryBackend,
)


@pytest.fixture
def master_keys():
    """Two master key versions; v2 is the active one."""
    return {1: secrets.token_bytes(32), 2: secrets.token_bytes(32)}


@pytest.fixture
def key_service(master_keys):
    return LocalKeyService(master_keys, active_key_id=2)


@pytest.fixture
def cipher(key_service):
    return EnvelopeCipher(key_service)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend, key_service):
    return CredStash(backend, key_service)
