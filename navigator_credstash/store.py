"""
CredStash: versioned, envelope-encrypted credential store.

Provides the public API:
- ``put(name, secret, context, version)`` - encrypt and store a new version
- ``get(name, context, version)`` - decrypt one version (highest by default)
- ``get_all(context, version)`` / ``search(pattern, context, version)`` -
  lazily decrypt every (matching) credential
- ``list_credentials(pattern)`` - names with their highest version
- ``delete(name)`` - remove every version of a name
- ``get_highest_version(name)``

The store keeps no state between calls. Concurrent ``put`` calls racing
for the same auto-incremented version are serialized by the backend's
conditional write: the loser gets ``DuplicateCredentialVersionError`` and
may retry.

Enumerations are snapshot-less: a ``put`` running while ``get_all`` or
``search`` iterates may or may not be observed. Every enumeration scans
the backend to completion (releasing its cursor) before yielding, so a
consumer may stop at any time.

Security Note:
    Never log secret values. Only log names and versions.
"""
import logging
from contextlib import aclosing
from typing import Optional, Union
from collections.abc import AsyncIterator

from .backends.abstract import CredentialBackend
from .config import CredStashConfig
from .credential import Credential, EncryptionContext
from .crypto import DEFAULT_KEY_ID, EnvelopeCipher
from .exceptions import CredentialNotFoundError
from .keys import KeyService, LocalKeyService
from .pattern import compile as compile_pattern
from .versioning import VersionSequencer, resolve_version

logger = logging.getLogger("navigator.credstash")

Version = Union[int, str, None]


class CredStash:
    """Credential store facade.

    Args:
        backend: Persistent store of credential records.
        key_service: Key-management collaborator for data keys.
        key_id: Key identifier (alias) used for every data key.
    """

    def __init__(
        self,
        backend: CredentialBackend,
        key_service: KeyService,
        key_id: str = DEFAULT_KEY_ID,
    ):
        self._backend = backend
        self._cipher = EnvelopeCipher(key_service, key_id)
        self._versions = VersionSequencer(backend)

    @property
    def backend(self) -> CredentialBackend:
        return self._backend

    @property
    def cipher(self) -> EnvelopeCipher:
        return self._cipher

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_name(name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Credential name cannot be empty")

    async def _collect(
        self,
        pattern: str,
        version: Optional[str],
    ) -> dict[str, Optional[Credential]]:
        """Scan the backend and pick one record per matching name.

        With ``version`` None the highest version of each name is picked;
        otherwise the record with exactly that version, or None when the
        name has no such version.
        """
        matcher = compile_pattern(pattern)
        selected: dict[str, Optional[Credential]] = {}
        async with aclosing(self._backend.scan_all()) as scan:
            async for credential in scan:
                name = credential.name
                if not matcher.test(name):
                    continue
                current = selected.get(name)
                if version is None:
                    if current is None or credential.version > current.version:
                        selected[name] = credential
                elif credential.version == version:
                    selected[name] = credential
                else:
                    selected.setdefault(name, None)
        return dict(sorted(selected.items()))

    async def _decrypt_all(
        self,
        pattern: str,
        context: Optional[EncryptionContext],
        version: Version,
    ) -> AsyncIterator[tuple[str, bytes]]:
        fixed = resolve_version(version)
        selected = await self._collect(pattern, fixed)
        for name, credential in selected.items():
            if credential is None:
                raise CredentialNotFoundError(name, fixed)
            yield name, await self._cipher.decrypt(credential, context)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_credentials(
        self,
        pattern: str = "*",
    ) -> AsyncIterator[tuple[str, str]]:
        """Iterate (name, highest version) of every credential matching ``pattern``.

        The pattern accepts ``*`` and ``?`` wildcards and ``[]`` grouping,
        e.g. ``"gr[ae]y"`` or ``"group*"``. Nothing is decrypted.
        """
        selected = await self._collect(pattern, None)
        for name, credential in selected.items():
            yield name, credential.version

    def get_all(
        self,
        context: Optional[EncryptionContext] = None,
        version: Version = None,
    ) -> AsyncIterator[tuple[str, bytes]]:
        """Iterate (name, secret) for every credential in the store.

        Args:
            context: Encryption context used for every credential.
            version: Version applied to all credentials, or None for the
                highest version of each.

        Raises:
            CredentialNotFoundError: A name lacks the requested version.
            IntegrityFailure: A credential's HMAC does not match.
            DecryptionFailure: A credential cannot be decrypted.
        """
        return self._decrypt_all("*", context, version)

    def search(
        self,
        pattern: str = "*",
        context: Optional[EncryptionContext] = None,
        version: Version = None,
    ) -> AsyncIterator[tuple[str, bytes]]:
        """Like :meth:`get_all`, restricted to names matching ``pattern``."""
        return self._decrypt_all(pattern, context, version)

    async def get(
        self,
        name: str,
        context: Optional[EncryptionContext] = None,
        version: Version = None,
    ) -> bytes:
        """Fetch and decrypt a credential.

        Args:
            name: Credential name.
            context: Encryption context the credential was stored with.
            version: Version to fetch (numeric values are zero-padded), or None
                for the highest.

        Raises:
            CredentialNotFoundError: If the credential does not exist.
            IntegrityFailure: If the HMAC does not match.
            DecryptionFailure: If decryption fails.
        """
        self._validate_name(name)
        resolved = resolve_version(version)
        if resolved is None:
            versions = await self._backend.query_versions(name)
            if not versions:
                raise CredentialNotFoundError(name)
            resolved = max(versions)
        credential = await self._backend.get_item(name, resolved)
        if credential is None:
            raise CredentialNotFoundError(name, resolved)
        logger.debug("CredStash get: name=%s version=%s", name, resolved)
        return await self._cipher.decrypt(credential, context)

    async def put(
        self,
        name: str,
        secret: Union[bytes, str],
        context: Optional[EncryptionContext] = None,
        version: Version = None,
    ) -> Credential:
        """Encrypt and store a new credential version.

        Args:
            name: Credential name.
            secret: Secret value; ``str`` is encoded as UTF-8.
            context: Encryption context bound to the credential.
            version: Version to store (numeric values are zero-padded, other
                strings are used verbatim), or None for the next
                auto-incremented version.

        Returns:
            The stored credential record.

        Raises:
            AutoIncrementFailure: If the current version is not numeric.
            DuplicateCredentialVersionError: If the version already exists.
            EncryptionFailure: If encryption fails.
        """
        self._validate_name(name)
        resolved = resolve_version(version)
        if resolved is None:
            resolved = await self._versions.next_for(name)
        credential = await self._cipher.encrypt(
            secret, context, name=name, version=resolved,
        )
        await self._backend.put_item(credential, conditional=True)
        logger.debug("CredStash put: name=%s version=%s", name, resolved)
        return credential

    async def delete(self, name: str) -> None:
        """Delete every version of a credential. Missing names are ignored."""
        self._validate_name(name)
        count = await self._backend.delete_all_versions(name)
        logger.debug("CredStash delete: name=%s versions=%d", name, count)

    async def get_highest_version(self, name: str) -> str:
        """Highest stored version of ``name``, or zero-padded ``"0"``."""
        self._validate_name(name)
        return await self._versions.highest_version(name)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: CredStashConfig,
        backend: CredentialBackend,
        key_service: Optional[KeyService] = None,
    ) -> "CredStash":
        """Build a store from configuration.

        A :class:`LocalKeyService` over the configured master keys is used
        when no ``key_service`` is given.
        """
        if key_service is None:
            key_service = LocalKeyService(
                config.master_keys, config.active_key_id,
            )
        return cls(backend, key_service, key_id=config.key_id)
