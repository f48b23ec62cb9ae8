import logging
from typing import Any, Optional

from pydantic import ValidationError

from org.spacesprotocol.sep.resolve.model import (
    Action,
    ActionAdapter,
    Error,
    SearchRedirect,
)

logger = logging.getLogger(__name__)

ACTION_CACHE_PREFIX = "sep:action:"


def is_cacheable(action: Action) -> bool:
    """Actions that depend on the caller's search preference are never cached."""
    return not isinstance(action, (SearchRedirect, Error))


class ActionCache:
    """
    Redis backed cache of resolved actions, keyed by the exact query string.

    Entries expire after `ttl` seconds. Concurrent misses for the same query
    may both write; the last write wins. Cache failures are logged and treated
    as misses so they never change the outcome of a resolution.
    """

    def __init__(self, redis_client: Any, ttl: int) -> None:
        self.redis_client = redis_client
        self.ttl = ttl

    @staticmethod
    def key(query: str) -> str:
        return f"{ACTION_CACHE_PREFIX}{query}"

    async def get(self, query: str) -> Optional[Action]:
        try:
            value = await self.redis_client.get(self.key(query))
        except Exception as e:
            logger.warning("Action cache read failed for %s: %s", query, e)
            return None

        if value is None:
            return None

        try:
            return ActionAdapter.validate_json(value)
        except ValidationError as e:
            logger.warning("Discarding invalid cached action for %s: %s", query, e)
            return None

    async def set(self, query: str, action: Action) -> None:
        if not is_cacheable(action):
            return
        try:
            await self.redis_client.set(
                self.key(query), ActionAdapter.dump_json(action), ex=self.ttl
            )
        except Exception as e:
            logger.warning("Action cache write failed for %s: %s", query, e)
