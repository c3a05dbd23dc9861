"""
Credential Record: one stored, encrypted version of one named secret.

A record is immutable: a new version of a secret is a new record.
Only ``name`` and ``version`` are meaningful to the store; ``wrapped_key``,
``ciphertext`` and ``integrity_tag`` are produced by the envelope cipher.

Security Note:
    ``__repr__`` never includes the byte fields.
"""
from typing import Optional
from collections.abc import Mapping

from pydantic import BaseModel, Field, field_validator


EncryptionContext = Mapping[str, str]


def normalize_context(context: Optional[EncryptionContext]) -> dict[str, str]:
    """Return the encryption context as a plain dict.

    ``None`` means an empty context.

    Raises:
        ValueError: If context is not a mapping of strings to strings.
    """
    if context is None:
        return {}
    if not isinstance(context, Mapping):
        raise ValueError(
            f"Encryption context must be a mapping, got {type(context).__name__}"
        )
    result: dict[str, str] = {}
    for key, value in context.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError(
                "Encryption context keys and values must be strings"
            )
        result[key] = value
    return result


class Credential(BaseModel):
    """An encrypted version of a named secret."""

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    wrapped_key: bytes
    ciphertext: bytes
    integrity_tag: bytes

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject names made only of whitespace."""
        if not v.strip():
            raise ValueError("Credential name cannot be blank")
        return v

    def __repr__(self) -> str:
        return f'<Credential name={self.name!r} version={self.version!r}>'

    __str__ = __repr__
