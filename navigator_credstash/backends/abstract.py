"""Persistent store contract used by the credential store."""
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ..credential import Credential


class CredentialBackend(ABC):
    """Persistent store of credential records keyed by (name, version).

    Implementations only need lexicographic ordering of versions; the
    store never interprets them numerically.
    """

    @abstractmethod
    async def put_item(self, credential: Credential, conditional: bool = True) -> None:
        """Persist a credential record.

        Args:
            credential: Record to store.
            conditional: When True, fail if (name, version) already exists.
                When False, replace any existing record.

        Raises:
            DuplicateCredentialVersionError: Conditional write found an
                existing (name, version).
        """

    @abstractmethod
    async def get_item(self, name: str, version: str) -> Credential | None:
        """Return the record for (name, version), or None."""

    @abstractmethod
    async def query_versions(self, name: str) -> list[str]:
        """Return every stored version of ``name`` (any order)."""

    @abstractmethod
    def scan_all(self) -> AsyncIterator[Credential]:
        """Iterate every stored record.

        Any resource held by the scan (connection, cursor) is released when
        the iteration ends, fails, or is closed early.
        """

    @abstractmethod
    async def delete_all_versions(self, name: str) -> int:
        """Delete every version of ``name``; return how many were removed."""
