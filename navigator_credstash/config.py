"""
CredStash Configuration: validated settings for the store.

``CredStashConfig.from_env`` reads:
    CREDSTASH_MASTER_KEY_v{N}   base64 master key for key version N (required)
    CREDSTASH_ACTIVE_KEY_ID     key version wrapping new data keys (required)
    CREDSTASH_KEY_ID            key alias handed to the key service
    CREDSTASH_TABLE             table used by the PostgreSQL backend
    CREDSTASH_SCAN_BATCH_SIZE   rows prefetched per scan round trip

Security Note:
    Never log key material. Only log key IDs and version numbers.
"""
import os
import re
import base64
import secrets
import logging
from typing import Optional
from collections.abc import Mapping

from pydantic import BaseModel, Field, field_validator, model_validator

from .crypto import DEFAULT_KEY_ID
from .backends.postgres import DEFAULT_TABLE, TABLE_PATTERN

logger = logging.getLogger("navigator.credstash")

MASTER_KEY_BYTES = 32

_KEY_ENV_PATTERN = re.compile(r"^CREDSTASH_MASTER_KEY_v(\d+)$")


def generate_master_key() -> str:
    """Base64 text of a fresh random master key, ready for CREDSTASH_MASTER_KEY_v{N}."""
    return base64.b64encode(secrets.token_bytes(MASTER_KEY_BYTES)).decode("ascii")


class CredStashConfig(BaseModel):
    """Validated credential store configuration."""

    master_keys: dict[int, bytes]
    active_key_id: int
    key_id: str = Field(default=DEFAULT_KEY_ID, min_length=1)
    table: str = Field(default=DEFAULT_TABLE)
    scan_batch_size: int = Field(default=100, ge=1, le=10000)

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("master_keys")
    @classmethod
    def validate_master_keys(cls, v: dict[int, bytes]) -> dict[int, bytes]:
        """Every master key must be 32 bytes with a uint16 version."""
        if not v:
            raise ValueError("At least one master key is required")
        for version, key in v.items():
            if not 0 <= version <= 0xFFFF:
                raise ValueError(f"Master key version out of range: {version}")
            if len(key) != MASTER_KEY_BYTES:
                raise ValueError(
                    f"Master key v{version} must be exactly {MASTER_KEY_BYTES} "
                    f"bytes, got {len(key)}"
                )
        return v

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if not TABLE_PATTERN.match(v):
            raise ValueError(f"Invalid table name: {v}")
        return v

    @model_validator(mode="after")
    def validate_active_key_exists(self) -> "CredStashConfig":
        if self.active_key_id not in self.master_keys:
            raise ValueError(
                f"active_key_id {self.active_key_id} not found in "
                f"master_keys (available: {sorted(self.master_keys)})"
            )
        return self

    @staticmethod
    def _master_keys_from(environ: Mapping[str, str]) -> dict[int, bytes]:
        keys: dict[int, bytes] = {}
        for name, value in environ.items():
            match = _KEY_ENV_PATTERN.match(name)
            if match is None:
                continue
            key = base64.b64decode(value, validate=True)
            if len(key) != MASTER_KEY_BYTES:
                raise ValueError(
                    f"{name} must decode to {MASTER_KEY_BYTES} bytes, got {len(key)}"
                )
            keys[int(match.group(1))] = key
        if not keys:
            raise RuntimeError(
                "No master keys configured: set CREDSTASH_MASTER_KEY_v1 "
                "(see generate_master_key)"
            )
        return keys

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "CredStashConfig":
        """Build the configuration from ``CREDSTASH_*`` variables.

        Args:
            environ: Variables to read; ``os.environ`` by default.

        Raises:
            RuntimeError: No master key or no active key id is set.
            ValueError: A variable holds an invalid value.
        """
        if environ is None:
            environ = os.environ
        master_keys = cls._master_keys_from(environ)
        active = environ.get("CREDSTASH_ACTIVE_KEY_ID")
        if active is None:
            raise RuntimeError("CREDSTASH_ACTIVE_KEY_ID is not set")
        logger.debug(
            "CredStash master key versions %s, active %s", sorted(master_keys), active
        )
        return cls(
            master_keys=master_keys,
            active_key_id=int(active),
            key_id=environ.get("CREDSTASH_KEY_ID", DEFAULT_KEY_ID),
            table=environ.get("CREDSTASH_TABLE", DEFAULT_TABLE),
            scan_batch_size=int(environ.get("CREDSTASH_SCAN_BATCH_SIZE", "100")),
        )
