"""Navigator CredStash: versioned, envelope-encrypted credential store.

Security Note (Threat Model):
    Secrets and data keys exist in process memory while a credential is
    encrypted or decrypted. Stored records only hold the wrapped data key,
    so reading the backend alone never reveals a secret; the key service
    must also unwrap the data key under the original encryption context.
"""

from .version import __version__
from .store import CredStash
from .credential import Credential, EncryptionContext
from .crypto import DEFAULT_KEY_ID, DecryptResult, EnvelopeCipher
from .keys import KeyService, LocalKeyService
from .config import CredStashConfig, generate_master_key
from .backends import CredentialBackend, MemoryBackend, PostgresBackend
from .versioning import PAD_LEN, next_version, padded_version
from .exceptions import (
    AutoIncrementFailure,
    CredentialNotFoundError,
    CredStashError,
    DecryptionFailure,
    DuplicateCredentialVersionError,
    EncryptionFailure,
    IntegrityFailure,
    InvalidCiphertextError,
    KeyServiceError,
)

__all__ = [
    "__version__",
    "CredStash",
    "Credential",
    "EncryptionContext",
    "DEFAULT_KEY_ID",
    "DecryptResult",
    "EnvelopeCipher",
    "KeyService",
    "LocalKeyService",
    "CredStashConfig",
    "generate_master_key",
    "CredentialBackend",
    "MemoryBackend",
    "PostgresBackend",
    "PAD_LEN",
    "next_version",
    "padded_version",
    "AutoIncrementFailure",
    "CredentialNotFoundError",
    "CredStashError",
    "DecryptionFailure",
    "DuplicateCredentialVersionError",
    "EncryptionFailure",
    "IntegrityFailure",
    "InvalidCiphertextError",
    "KeyServiceError",
]
