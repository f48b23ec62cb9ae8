"""
Unit tests for the action cache in org.spacesprotocol.sep.resolve.cache

Uses fakeredis for the Redis client.
"""

import pytest
from unittest.mock import AsyncMock

from org.spacesprotocol.sep.resolve.cache import ActionCache, is_cacheable
from org.spacesprotocol.sep.resolve.model import (
    Error,
    ErrorKind,
    ExplorerRedirect,
    InfoPage,
    InfoPageKind,
    RawZone,
    Redirect,
    SearchRedirect,
    Zone,
)


class TestIsCacheable:
    """Test suite for cacheability of actions."""

    @pytest.mark.parametrize(
        "action",
        [
            Redirect(target="10.0.0.5"),
            InfoPage(kind=InfoPageKind.bid, subject="@example"),
            ExplorerRedirect(subject="@foo"),
            RawZone(zone=Zone(name="@example")),
        ],
    )
    def test_preference_independent_actions(self, action):
        assert is_cacheable(action) is True

    def test_search_redirect(self):
        assert is_cacheable(SearchRedirect(url="https://x/?q=bar")) is False

    def test_error(self):
        error = Error(kind=ErrorKind.missing_preference, detail="missing")
        assert is_cacheable(error) is False


class TestActionCache:
    """Test suite for the Redis action cache."""

    @pytest.mark.asyncio
    async def test_miss(self, fake_redis_client):
        cache = ActionCache(fake_redis_client, 60)
        assert await cache.get("@example") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, fake_redis_client):
        """Test a stored action is returned for the exact same query."""
        cache = ActionCache(fake_redis_client, 60)
        await cache.set("@example", InfoPage(kind=InfoPageKind.transfer, subject="@example"))

        cached = await cache.get("@example")

        assert cached == InfoPage(kind=InfoPageKind.transfer, subject="@example")
        assert await cache.get("example") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self, fake_redis_client):
        """Test entries are written with the configured TTL."""
        cache = ActionCache(fake_redis_client, 45)
        await cache.set("@example", Redirect(target="10.0.0.5"))

        ttl = await fake_redis_client.ttl(ActionCache.key("@example"))
        assert 0 < ttl <= 45

    @pytest.mark.asyncio
    async def test_raw_zone_round_trip(self, fake_redis_client):
        cache = ActionCache(fake_redis_client, 60)
        action = RawZone(zone=Zone(name="@example", authorities=[]))
        await cache.set("@example", action)
        assert await cache.get("@example") == action

    @pytest.mark.asyncio
    async def test_search_redirect_not_stored(self, fake_redis_client):
        cache = ActionCache(fake_redis_client, 60)
        await cache.set("@bar", SearchRedirect(url="https://x/?q=bar"))
        assert await fake_redis_client.exists(ActionCache.key("@bar")) == 0

    @pytest.mark.asyncio
    async def test_invalid_entry_is_a_miss(self, fake_redis_client):
        await fake_redis_client.set(ActionCache.key("@example"), b"{not json")
        cache = ActionCache(fake_redis_client, 60)
        assert await cache.get("@example") is None

    @pytest.mark.asyncio
    async def test_redis_failures_are_misses(self):
        """Test Redis errors never escape the cache."""
        broken_client = AsyncMock()
        broken_client.get.side_effect = ConnectionError("redis down")
        broken_client.set.side_effect = ConnectionError("redis down")
        cache = ActionCache(broken_client, 60)

        assert await cache.get("@example") is None
        await cache.set("@example", Redirect(target="10.0.0.5"))
