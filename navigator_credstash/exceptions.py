"""CredStash Exceptions.

Every failure raised by the store derives from :class:`CredStashError`.
Underlying causes (key service errors, cipher errors) are kept on
``cause`` and chained with ``raise ... from``.
"""
from typing import Optional


class CredStashError(Exception):
    """Base class for all credential store errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class CredentialNotFoundError(CredStashError):
    """The requested name (or name and version) does not exist."""

    def __init__(self, name: str, version: Optional[str] = None):
        if version is None:
            message = f'Credential "{name}" not found'
        else:
            message = f'Credential "{name}" version {version} not found'
        super().__init__(message)
        self.name = name
        self.version = version


class DuplicateCredentialVersionError(CredStashError):
    """A credential with the same name and version is already stored."""

    def __init__(
        self,
        name: str,
        version: str,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f'Credential "{name}" version {version} already exists',
            cause
        )
        self.name = name
        self.version = version


class AutoIncrementFailure(CredStashError):
    """Current highest version is not numeric and cannot be incremented."""


class EncryptionFailure(CredStashError):
    """Data key generation or the cipher failed while encrypting."""


class DecryptionFailure(CredStashError):
    """Data key unwrapping or the cipher failed while decrypting."""


class IntegrityFailure(CredStashError):
    """Computed HMAC does not match the one stored with the credential."""


class KeyServiceError(CredStashError):
    """A key service operation failed."""


class InvalidCiphertextError(KeyServiceError):
    """Wrapped key is not valid for the given key and encryption context."""
