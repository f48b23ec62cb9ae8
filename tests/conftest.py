"""
Shared test configuration and fixtures for SEP tests.

Provides fixed settings, stub backends in their failure modes and a fake
Redis client for the action cache.
"""

import pytest
import pytest_asyncio
import fakeredis.aioredis

from org.spacesprotocol.sep.app.config import Settings
from org.spacesprotocol.sep.resolve.model import (
    RecordLookupException,
    RegistryException,
)
from tests.test_helpers import StubRecordLookup, StubRegistryClient


@pytest.fixture
def record_lookup_unavailable():
    """Record lookup whose backend cannot be reached."""
    return StubRecordLookup(error=RecordLookupException.unavailable("connection refused"))


@pytest.fixture
def registry_unavailable():
    """Registry client whose backend cannot be reached."""
    return StubRegistryClient(RegistryException.unavailable("connection refused"))


@pytest.fixture
def settings():
    """Settings with fixed values, independent of the environment."""
    return Settings(
        sep_host="127.0.0.1",
        sep_port=3000,
        spaced_host="127.0.0.1",
        spaced_port=7225,
        explorer_url="https://explorer.example/space/",
        pinning_url="https://pin.example/pin/",
        redis_dsn=None,
        metrics_backend="none",
    )


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()
