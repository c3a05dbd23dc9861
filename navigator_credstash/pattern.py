"""Shell-style glob matching over credential names.

``*`` matches any run of characters, ``?`` exactly one and ``[...]`` one
character of the set. Everything else is literal and matching is
case-sensitive against the whole name.
"""
import re
import fnmatch
from functools import lru_cache


class Matcher:
    """A compiled glob pattern."""

    __slots__ = ('pattern', '_regex')

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(fnmatch.translate(pattern), re.DOTALL)

    def test(self, name: str) -> bool:
        return self._regex.match(name) is not None

    def __call__(self, name: str) -> bool:
        return self.test(name)

    def __repr__(self) -> str:
        return f'<Matcher {self.pattern!r}>'


@lru_cache(maxsize=128)
def compile(pattern: str) -> Matcher:
    return Matcher(pattern)
