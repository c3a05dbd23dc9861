"""Credential store backends."""

from .abstract import CredentialBackend
from .memory import MemoryBackend
from .postgres import PostgresBackend

__all__ = [
    "CredentialBackend",
    "MemoryBackend",
    "PostgresBackend",
]
