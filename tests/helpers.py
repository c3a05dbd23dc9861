"""Test doubles and helpers shared across test modules."""
import asyncio

from navigator_credstash.keys import KeyService


class YieldingKeyService(KeyService):
    """Key service that yields to the event loop on every call.

    Lets concurrent ``put`` calls interleave between reading the highest
    version and writing the new one.
    """

    def __init__(self, inner: KeyService):
        self.inner = inner
        self.calls = 0

    async def generate_data_key(self, key_id, context, number_of_bytes=64):
        self.calls += 1
        await asyncio.sleep(0)
        return await self.inner.generate_data_key(key_id, context, number_of_bytes)

    async def decrypt(self, key_id, wrapped, context):
        self.calls += 1
        await asyncio.sleep(0)
        return await self.inner.decrypt(key_id, wrapped, context)


class FailingKeyService(KeyService):
    """Key service whose every call fails with a generic error."""

    async def generate_data_key(self, key_id, context, number_of_bytes=64):
        raise ConnectionError("key service unreachable")

    async def decrypt(self, key_id, wrapped, context):
        raise ConnectionError("key service unreachable")


class ShortKeyService(KeyService):
    """Key service returning a data key of the wrong size."""

    async def generate_data_key(self, key_id, context, number_of_bytes=64):
        return b"\x01" * 16, b"wrapped"

    async def decrypt(self, key_id, wrapped, context):
        return b"\x01" * 16


async def collect(aiter):
    """Drain an async iterator into a list."""
    return [item async for item in aiter]
