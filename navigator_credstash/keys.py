"""
Key Services: data key generation and unwrapping.

The envelope cipher never sees a master key: it asks a key service for a
fresh data key (plaintext plus wrapped form) and later hands the wrapped
form back to recover the plaintext. Both calls are bound to an encryption
context, which must be identical on both sides.

``LocalKeyService`` is a reference implementation backed by versioned
master keys (see ``CredStashConfig.from_env``):

    wrapped = [key_version 2B uint16 BE][nonce 12B][AES-GCM(data key) + tag]

The wrapping key is HKDF(MASTER_KEY_vN, "credstash-kms-vN:<key_id>") and the
encryption context is authenticated as AAD, so unwrapping with another
context, another key id or a tampered blob fails with
``InvalidCiphertextError``.

Security Note:
    Never log key material. Only log key ids and key versions.
"""
import os
import struct
import logging
from abc import ABC, abstractmethod
from typing import Optional

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .credential import EncryptionContext, normalize_context
from .exceptions import InvalidCiphertextError, KeyServiceError

logger = logging.getLogger("navigator.credstash")

NONCE_SIZE = 12  # 96-bit nonce
KEY_VERSION_SIZE = 2  # uint16 big-endian
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16


class KeyService(ABC):
    """Key-management collaborator used by the envelope cipher."""

    @abstractmethod
    async def generate_data_key(
        self,
        key_id: str,
        context: EncryptionContext,
        number_of_bytes: int = 64,
    ) -> tuple[bytes, bytes]:
        """Generate a data key.

        Returns:
            Tuple of (plaintext, wrapped) key bytes.

        Raises:
            KeyServiceError: If the key cannot be generated.
        """

    @abstractmethod
    async def decrypt(
        self,
        key_id: str,
        wrapped: bytes,
        context: EncryptionContext,
    ) -> bytes:
        """Unwrap a data key produced by ``generate_data_key``.

        Raises:
            InvalidCiphertextError: If ``wrapped`` is not valid for the
                key and encryption context given.
            KeyServiceError: On any other failure.
        """


def derive_wrapping_key(master_key: bytes, key_version: int, key_id: str) -> bytes:
    """Derive a 32-byte wrapping key using HKDF-SHA256.

    Args:
        master_key: Raw master key for ``key_version``.
        key_version: Master key version number.
        key_id: Key identifier (alias) requested by the caller.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=f"credstash-kms-v{key_version}:{key_id}".encode("utf-8"),
    )
    return hkdf.derive(master_key)


def context_aad(context: Optional[EncryptionContext]) -> bytes:
    """Canonical bytes of an encryption context (key order irrelevant)."""
    return orjson.dumps(
        normalize_context(context), option=orjson.OPT_SORT_KEYS
    )


class LocalKeyService(KeyService):
    """Key service backed by in-process versioned master keys.

    New data keys are always wrapped with ``active_key_id``; older master
    key versions are kept to unwrap keys produced before a rotation.
    """

    def __init__(self, master_keys: dict[int, bytes], active_key_id: int):
        if active_key_id not in master_keys:
            raise KeyError(
                f"Active key version {active_key_id} not found in provided master keys"
            )
        for version, key in master_keys.items():
            if len(key) != KEY_LENGTH:
                raise ValueError(
                    f"Master key v{version} must be exactly {KEY_LENGTH} bytes, "
                    f"got {len(key)}"
                )
            if not 0 <= version <= 0xFFFF:
                raise ValueError(f"Master key version out of range: {version}")
        self._master_keys = dict(master_keys)
        self._active_key_id = active_key_id

    @property
    def active_key_id(self) -> int:
        return self._active_key_id

    def _wrap(self, plaintext: bytes, key_id: str, aad: bytes) -> bytes:
        derived = derive_wrapping_key(
            self._master_keys[self._active_key_id], self._active_key_id, key_id
        )
        nonce = os.urandom(NONCE_SIZE)
        ct = AESGCM(derived).encrypt(nonce, plaintext, aad)
        return struct.pack("!H", self._active_key_id) + nonce + ct

    async def generate_data_key(
        self,
        key_id: str,
        context: EncryptionContext,
        number_of_bytes: int = 64,
    ) -> tuple[bytes, bytes]:
        if number_of_bytes < 1 or number_of_bytes > 1024:
            raise KeyServiceError(
                f"number_of_bytes must be between 1 and 1024, got {number_of_bytes}"
            )
        try:
            aad = context_aad(context)
        except ValueError as err:
            raise KeyServiceError(str(err), err) from err
        plaintext = os.urandom(number_of_bytes)
        wrapped = self._wrap(plaintext, key_id, aad)
        logger.debug(
            "Generated %d-byte data key for %s with master key v%d",
            number_of_bytes, key_id, self._active_key_id,
        )
        return plaintext, wrapped

    async def decrypt(
        self,
        key_id: str,
        wrapped: bytes,
        context: EncryptionContext,
    ) -> bytes:
        _min = KEY_VERSION_SIZE + NONCE_SIZE + TAG_SIZE
        if len(wrapped) < _min:
            raise InvalidCiphertextError(
                f"Wrapped key too short: {len(wrapped)} bytes (minimum {_min})"
            )
        try:
            aad = context_aad(context)
        except ValueError as err:
            raise KeyServiceError(str(err), err) from err
        key_version = struct.unpack("!H", wrapped[:KEY_VERSION_SIZE])[0]
        if key_version not in self._master_keys:
            raise InvalidCiphertextError(
                f"Master key version {key_version} is not available"
            )
        derived = derive_wrapping_key(
            self._master_keys[key_version], key_version, key_id
        )
        nonce = wrapped[KEY_VERSION_SIZE:KEY_VERSION_SIZE + NONCE_SIZE]
        ct = wrapped[KEY_VERSION_SIZE + NONCE_SIZE:]
        try:
            return AESGCM(derived).decrypt(nonce, ct, aad)
        except InvalidTag as err:
            raise InvalidCiphertextError(
                f"Wrapped key is not valid for {key_id} under the given "
                "encryption context",
                err
            ) from err
