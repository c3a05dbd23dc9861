"""
CredStash Crypto Core: envelope encryption of credential secrets.

For every credential a 64-byte data key is requested from the key service:
- bytes[0:32]  → AES-256-CTR key encrypting the secret
- bytes[32:64] → HMAC-SHA256 key over the ciphertext (encrypt-then-MAC)

Only the wrapped form of the data key is stored next to the ciphertext.

The CTR initial counter block is 12 zero bytes followed by the big-endian
uint32 ``1``. It is constant because every data key encrypts a single
message.

Security Note:
    Never log plaintext, data keys or ciphertext values.
"""
import struct
import logging
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .credential import Credential, EncryptionContext, normalize_context
from .keys import KeyService
from .exceptions import (
    CredStashError,
    DecryptionFailure,
    EncryptionFailure,
    IntegrityFailure,
    InvalidCiphertextError,
)

logger = logging.getLogger("navigator.credstash")

DEFAULT_KEY_ID = "alias/credstash"
DATA_KEY_BYTES = 64
DATA_KEY_LENGTH = 32  # AES-256


def counter_block(initial_value: int = 1) -> bytes:
    """Initial 16-byte counter block for AES in CTR mode."""
    return b"\x00" * 12 + struct.pack(">I", initial_value)


def split_data_key(plaintext: bytes) -> tuple[bytes, bytes]:
    """Split a 64-byte data key into (data_key, hmac_key)."""
    if len(plaintext) != DATA_KEY_BYTES:
        raise ValueError(
            f"Data key must be {DATA_KEY_BYTES} bytes, got {len(plaintext)}"
        )
    return plaintext[:DATA_KEY_LENGTH], plaintext[DATA_KEY_LENGTH:]


def aes_ctr(data: bytes, data_key: bytes) -> bytes:
    """Apply AES-256-CTR to ``data``; the same call encrypts and decrypts."""
    cipher = Cipher(algorithms.AES(data_key), modes.CTR(counter_block()))
    transform = cipher.encryptor()
    return transform.update(data) + transform.finalize()


def compute_hmac(data: bytes, hmac_key: bytes) -> bytes:
    h = hmac.HMAC(hmac_key, hashes.SHA256())
    h.update(data)
    return h.finalize()


def verify_hmac(credential: Credential, hmac_key: bytes) -> None:
    """Check the integrity tag of a credential in constant time.

    Raises:
        IntegrityFailure: If the computed HMAC does not match.
    """
    h = hmac.HMAC(hmac_key, hashes.SHA256())
    h.update(credential.ciphertext)
    try:
        h.verify(credential.integrity_tag)
    except InvalidSignature as err:
        raise IntegrityFailure(
            f"Computed HMAC on {credential.name} does not match stored HMAC"
        ) from err


class DecryptResult:
    """Outcome of :meth:`EnvelopeCipher.try_decrypt`.

    Holds either the decrypted ``secret`` or the ``error`` that prevented
    it; never both.
    """

    __slots__ = ('secret', 'error')

    def __init__(
        self,
        secret: Optional[bytes] = None,
        error: Optional[CredStashError] = None
    ):
        if (secret is None) == (error is None):
            raise ValueError("DecryptResult needs exactly one of secret or error")
        self.secret = secret
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> bytes:
        """Return the secret, or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.secret

    def __repr__(self) -> str:
        if self.ok:
            return '<DecryptResult ok>'
        return f'<DecryptResult error={type(self.error).__name__}>'


class EnvelopeCipher:
    """Encrypts and decrypts credentials with key-service data keys.

    Args:
        key_service: Key-management collaborator.
        key_id: Key identifier (alias) passed on every key-service call.
    """

    def __init__(self, key_service: KeyService, key_id: str = DEFAULT_KEY_ID):
        self._key_service = key_service
        self._key_id = key_id

    @property
    def key_id(self) -> str:
        return self._key_id

    async def encrypt(
        self,
        secret: Union[bytes, str],
        context: Optional[EncryptionContext] = None,
        *,
        name: str,
        version: str,
    ) -> Credential:
        """Encrypt a secret into a new credential record.

        Args:
            secret: Secret value; ``str`` is encoded as UTF-8.
            context: Encryption context bound to the data key.
            name: Credential name stamped on the record.
            version: Credential version stamped on the record.

        Raises:
            EncryptionFailure: If the data key cannot be generated or the
                cipher fails.
        """
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        ctx = normalize_context(context)
        try:
            plaintext, wrapped = await self._key_service.generate_data_key(
                self._key_id, ctx, DATA_KEY_BYTES,
            )
        except Exception as err:
            raise EncryptionFailure(
                f'Failed to generate data key using key "{self._key_id}"', err
            ) from err
        try:
            data_key, hmac_key = split_data_key(plaintext)
            ciphertext = aes_ctr(secret, data_key)
            tag = compute_hmac(ciphertext, hmac_key)
        except Exception as err:
            raise EncryptionFailure("Failed to encrypt secret.", err) from err
        return Credential(
            name=name,
            version=version,
            wrapped_key=wrapped,
            ciphertext=ciphertext,
            integrity_tag=tag,
        )

    async def decrypt(
        self,
        credential: Credential,
        context: Optional[EncryptionContext] = None,
    ) -> bytes:
        """Verify and decrypt a credential record.

        Raises:
            DecryptionFailure: If the data key cannot be unwrapped or the
                cipher fails.
            IntegrityFailure: If the HMAC does not match.
        """
        ctx = normalize_context(context)
        try:
            plaintext = await self._key_service.decrypt(
                self._key_id, credential.wrapped_key, ctx,
            )
        except Exception as err:
            message = "Failed to decrypt secret."
            if isinstance(err, InvalidCiphertextError):
                if not ctx:
                    message += (
                        "\nThe credential may require that an encryption "
                        "context be provided to decrypt it."
                    )
                else:
                    message += (
                        "\nThe encryption context provided may not match the "
                        "context used when the credential was stored."
                    )
            raise DecryptionFailure(message, err) from err
        try:
            data_key, hmac_key = split_data_key(plaintext)
        except ValueError as err:
            raise DecryptionFailure("Failed to decrypt secret.", err) from err

        verify_hmac(credential, hmac_key)

        try:
            return aes_ctr(credential.ciphertext, data_key)
        except Exception as err:
            raise DecryptionFailure("Failed to decrypt secret.", err) from err

    async def try_decrypt(
        self,
        credential: Credential,
        context: Optional[EncryptionContext] = None,
    ) -> DecryptResult:
        """Like :meth:`decrypt`, returning failures as a :class:`DecryptResult`."""
        try:
            return DecryptResult(secret=await self.decrypt(credential, context))
        except CredStashError as err:
            logger.debug(
                "Decrypt of %s v%s failed: %s",
                credential.name, credential.version, type(err).__name__,
            )
            return DecryptResult(error=err)
