"""In-process credential backend.

Useful for tests and for short-lived tools. Records live in a dict keyed
by (name, version); nothing is persisted.
"""
from collections.abc import AsyncIterator

from ..credential import Credential
from ..exceptions import DuplicateCredentialVersionError
from .abstract import CredentialBackend


class MemoryBackend(CredentialBackend):
    """Dict-backed store of credential records."""

    def __init__(self):
        self._items: dict[tuple[str, str], Credential] = {}
        self._open_scans = 0

    @property
    def open_scans(self) -> int:
        """Number of scans currently in progress."""
        return self._open_scans

    def __len__(self) -> int:
        return len(self._items)

    async def put_item(self, credential: Credential, conditional: bool = True) -> None:
        key = (credential.name, credential.version)
        if conditional and key in self._items:
            raise DuplicateCredentialVersionError(
                credential.name, credential.version
            )
        self._items[key] = credential

    async def get_item(self, name: str, version: str) -> Credential | None:
        return self._items.get((name, version))

    async def query_versions(self, name: str) -> list[str]:
        return [version for (n, version) in self._items if n == name]

    async def scan_all(self) -> AsyncIterator[Credential]:
        # iterate over a snapshot: puts during a scan may not be observed
        snapshot = sorted(self._items.items())
        self._open_scans += 1
        try:
            for _, credential in snapshot:
                yield credential
        finally:
            self._open_scans -= 1

    async def delete_all_versions(self, name: str) -> int:
        keys = [key for key in self._items if key[0] == name]
        for key in keys:
            del self._items[key]
        return len(keys)
