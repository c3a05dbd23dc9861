"""
Version Sequencer: auto-incremented, zero-padded credential versions.

Versions are stored as strings padded to ``PAD_LEN`` digits so that the
lexicographic order used by stores equals numeric order. 19 digits cover
every unsigned 63-bit value.
"""
import logging
from typing import Optional, Union

from .backends.abstract import CredentialBackend
from .exceptions import AutoIncrementFailure

logger = logging.getLogger("navigator.credstash")

PAD_LEN = 19


def padded_version(value: int) -> str:
    """Zero-pad a numeric version to ``PAD_LEN`` digits."""
    if value < 0:
        raise ValueError(f"Version cannot be negative: {value}")
    digits = str(value)
    if len(digits) > PAD_LEN:
        raise ValueError(f"Version {value} does not fit in {PAD_LEN} digits")
    return digits.zfill(PAD_LEN)


def _is_numeric(version: str) -> bool:
    return version.isascii() and version.isdigit()


def resolve_version(version: Union[int, str, None]) -> Optional[str]:
    """Normalize a caller-supplied version.

    ``int`` values and all-digit strings are zero-padded, other strings are
    used verbatim and ``None`` stays ``None`` (meaning "highest" or "next",
    depending on the caller).
    """
    if version is None:
        return None
    if isinstance(version, bool):
        raise ValueError("Version cannot be a boolean")
    if isinstance(version, int):
        return padded_version(version)
    if not version:
        raise ValueError("Version cannot be empty")
    if _is_numeric(version):
        return padded_version(int(version))
    return version


def next_version(current_highest: Optional[str]) -> str:
    """Return the version following ``current_highest``.

    Raises:
        AutoIncrementFailure: If ``current_highest`` is not numeric or the
            next version would not fit in ``PAD_LEN`` digits.
    """
    if not current_highest:
        return padded_version(1)
    if not _is_numeric(current_highest):
        raise AutoIncrementFailure(
            f'Can not auto-increment version. The current version "{current_highest}" '
            "is not numeric."
        )
    following = int(current_highest) + 1
    if len(str(following)) > PAD_LEN:
        raise AutoIncrementFailure(
            f'Can not auto-increment version. "{current_highest}" is the '
            f"highest version that fits in {PAD_LEN} digits."
        )
    return padded_version(following)


class VersionSequencer:
    """Reads version bookkeeping from a credential backend."""

    def __init__(self, backend: CredentialBackend):
        self._backend = backend

    async def highest_version(self, name: str) -> str:
        """Highest stored version of ``name``, or padded ``0`` if none."""
        versions = await self._backend.query_versions(name)
        if not versions:
            return padded_version(0)
        return max(versions)

    async def next_for(self, name: str) -> str:
        version = next_version(await self.highest_version(name))
        logger.debug("Next version for %s is %s", name, version)
        return version
