"""Tests for configuration loading."""
import os
import base64
import secrets

import pytest
from pydantic import ValidationError

from navigator_credstash import CredStashConfig, generate_master_key


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any CREDSTASH_* variables from the environment."""
    for name in list(os.environ):
        if name.startswith("CREDSTASH_"):
            monkeypatch.delenv(name)
    return monkeypatch


def b64key() -> str:
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class TestFromEnv:
    def test_loads_versions(self, clean_env):
        clean_env.setenv("CREDSTASH_MASTER_KEY_v1", b64key())
        clean_env.setenv("CREDSTASH_MASTER_KEY_v3", b64key())
        clean_env.setenv("CREDSTASH_ACTIVE_KEY_ID", "3")
        config = CredStashConfig.from_env()
        assert sorted(config.master_keys) == [1, 3]
        assert all(len(k) == 32 for k in config.master_keys.values())
        assert config.active_key_id == 3

    def test_explicit_mapping(self, clean_env):
        environ = {
            "CREDSTASH_MASTER_KEY_v1": b64key(),
            "CREDSTASH_ACTIVE_KEY_ID": "1",
            "CREDSTASH_SCAN_BATCH_SIZE": "25",
        }
        config = CredStashConfig.from_env(environ)
        assert sorted(config.master_keys) == [1]
        assert config.scan_batch_size == 25

    def test_no_keys(self, clean_env):
        clean_env.setenv("CREDSTASH_ACTIVE_KEY_ID", "1")
        with pytest.raises(RuntimeError, match="CREDSTASH_MASTER_KEY_v1"):
            CredStashConfig.from_env()

    def test_wrong_size(self, clean_env):
        clean_env.setenv(
            "CREDSTASH_MASTER_KEY_v1", base64.b64encode(b"short").decode()
        )
        clean_env.setenv("CREDSTASH_ACTIVE_KEY_ID", "1")
        with pytest.raises(ValueError, match="32 bytes"):
            CredStashConfig.from_env()

    def test_not_base64(self, clean_env):
        clean_env.setenv("CREDSTASH_MASTER_KEY_v1", "not base64!")
        clean_env.setenv("CREDSTASH_ACTIVE_KEY_ID", "1")
        with pytest.raises(ValueError):
            CredStashConfig.from_env()

    def test_active_key_missing(self, clean_env):
        clean_env.setenv("CREDSTASH_MASTER_KEY_v1", b64key())
        with pytest.raises(RuntimeError, match="CREDSTASH_ACTIVE_KEY_ID"):
            CredStashConfig.from_env()

    def test_generate_master_key(self):
        key = generate_master_key()
        assert len(base64.b64decode(key)) == 32
        assert key != generate_master_key()


class TestCredStashConfig:
    def test_defaults(self):
        config = CredStashConfig(
            master_keys={1: secrets.token_bytes(32)}, active_key_id=1,
        )
        assert config.key_id == "alias/credstash"
        assert config.table == "credstash.credentials"
        assert config.scan_batch_size == 100

    def test_active_key_must_exist(self):
        with pytest.raises(ValidationError, match="active_key_id"):
            CredStashConfig(master_keys={1: secrets.token_bytes(32)}, active_key_id=2)

    def test_master_key_size(self):
        with pytest.raises(ValidationError):
            CredStashConfig(master_keys={1: b"short"}, active_key_id=1)

    @pytest.mark.parametrize("table", ["bad name", "a.b.c", "1table", "t;drop"])
    def test_invalid_table(self, table):
        with pytest.raises(ValidationError):
            CredStashConfig(
                master_keys={1: secrets.token_bytes(32)},
                active_key_id=1,
                table=table,
            )

    def test_batch_size_bounds(self):
        with pytest.raises(ValidationError):
            CredStashConfig(
                master_keys={1: secrets.token_bytes(32)},
                active_key_id=1,
                scan_batch_size=0,
            )

    def test_from_env(self, clean_env):
        clean_env.setenv("CREDSTASH_MASTER_KEY_v1", b64key())
        clean_env.setenv("CREDSTASH_MASTER_KEY_v2", b64key())
        clean_env.setenv("CREDSTASH_ACTIVE_KEY_ID", "2")
        clean_env.setenv("CREDSTASH_KEY_ID", "alias/app")
        clean_env.setenv("CREDSTASH_TABLE", "secrets")
        config = CredStashConfig.from_env()
        assert config.active_key_id == 2
        assert sorted(config.master_keys) == [1, 2]
        assert config.key_id == "alias/app"
        assert config.table == "secrets"
