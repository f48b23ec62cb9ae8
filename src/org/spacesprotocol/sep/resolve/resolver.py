"""Space resolution orchestrator.

Composes record lookup, authority interpretation, the registry fallback and
the search fallback into a single decision per query:

1. Look up the zone published for the query.
2. No zone: ask the registry and map its state to an action.
3. A zone: interpret its authority records. A directive redirects; an empty
   zone is echoed back as-is; a zone without directives falls back to search.

Failures while looking up or interpreting the zone degrade to the search
fallback. The only error surfaced to callers is a missing search preference,
so the caller can prompt for one.
"""

import logging
from time import time
from typing import Any, Callable, Dict, Optional, Tuple, Union

import sentry_sdk

from org.spacesprotocol.sep.app.metrics import MetricsClient, NoOpMetricsClient
from org.spacesprotocol.sep.model.health import HealthGauge
from org.spacesprotocol.sep.resolve.authority import interpret
from org.spacesprotocol.sep.resolve.cache import ActionCache
from org.spacesprotocol.sep.resolve.model import (
    Action,
    Error,
    MissingPreferenceException,
    RawZone,
    RecordLookupException,
    Redirect,
    Zone,
)
from org.spacesprotocol.sep.resolve.records import RecordLookup
from org.spacesprotocol.sep.resolve.registry import (
    RegistryClient,
    registry_action,
    resolve_state,
)
from org.spacesprotocol.sep.resolve.search import build_search_redirect

logger = logging.getLogger(__name__)

PreferenceLookup = Callable[[], Optional[str]]
"""Returns the caller's search URL template, or None when none was chosen."""


def no_preference() -> Optional[str]:
    return None


class Resolver:
    """
    Resolves space queries into actions.

    The resolver holds no per-query state. Its collaborators (record lookup,
    registry client, optional action cache, health gauge and metrics client)
    are created and closed by the process that owns them.
    """

    def __init__(
        self,
        record_lookup: RecordLookup,
        registry_client: RegistryClient,
        metrics_client: Optional[MetricsClient] = None,
        action_cache: Optional[ActionCache] = None,
        health_gauge: Optional[HealthGauge] = None,
    ) -> None:
        self.record_lookup = record_lookup
        self.registry_client = registry_client
        self.metrics_client = metrics_client or NoOpMetricsClient()
        self.action_cache = action_cache
        self.health_gauge = health_gauge

    async def resolve(
        self, query: str, preference_lookup: PreferenceLookup = no_preference
    ) -> Action:
        """Resolve a query into exactly one action.

        Args:
            query: Space name, optionally prefixed with "@"
            preference_lookup: Returns the caller's search URL template. Only
                consulted when the search fallback is reached.

        Returns:
            The action to take for the query

        Raises:
            ValueError: If the query is empty
        """
        if query is None or len(query.strip()) == 0:
            raise ValueError("query must not be empty")

        if self.action_cache is not None:
            cached = await self.action_cache.get(query)
            if cached is not None:
                self.increment("sep.cache.hit", {"action": cached.action})
                return cached
            self.increment("sep.cache.miss")

        start_time = time()
        action, cacheable = await self.resolve_uncached(query, preference_lookup)
        self.emit(
            self.metrics_client.timer,
            "sep.resolve.time",
            time() - start_time,
            {"action": action.action},
        )
        self.increment("sep.resolve.action", {"action": action.action})

        if cacheable and self.action_cache is not None:
            await self.action_cache.set(query, action)

        return action

    async def resolve_uncached(
        self, query: str, preference_lookup: PreferenceLookup
    ) -> Tuple[Action, bool]:
        """Resolve without the cache.

        Returns the action and whether it may be cached. Actions derived from a
        backend failure are never cached.
        """
        zone: Optional[Zone] = None
        redirect: Optional[Redirect] = None
        try:
            zone = await self.record_lookup.lookup(query)
            if zone is not None:
                redirect = interpret(zone)
        except Exception as e:
            return await self.degrade(query, preference_lookup, e), False

        if zone is None:
            logger.info("%s : No DNS records found. Checking space details...", query)
            return await self.registry_fallback(query)

        if redirect is not None:
            return redirect, True

        if len(zone.authorities) == 0:
            logger.info("%s : Zone has no authority records", query)
            return RawZone(zone=zone), True

        logger.info(
            "%s : No A or TXT:path: or TXT:pkar: record found. Falling back to web search.",
            query,
        )
        return await self.search_fallback(query, preference_lookup), True

    async def registry_fallback(self, query: str) -> Tuple[Action, bool]:
        state = await resolve_state(self.registry_client, query)
        if state.error is not None:
            outcome = "error"
            await self.womp()
        elif state.state_name is None:
            outcome = "unknown"
        else:
            outcome = state.kind.value
        self.increment("sep.registry.state", {"outcome": outcome})
        return registry_action(state, query), state.error is None

    async def search_fallback(
        self, query: str, preference_lookup: PreferenceLookup, cause: str = ""
    ) -> Action:
        try:
            preference = preference_lookup()
        except Exception as e:
            logger.exception("%s : Search preference lookup failed", query)
            sentry_sdk.capture_exception(e)
            await self.womp()
            preference = None

        try:
            return build_search_redirect(query, preference, cause)
        except MissingPreferenceException as e:
            logger.error("%s : %s", query, e)
            return Error(kind=e.kind, detail=str(e))

    async def degrade(
        self, query: str, preference_lookup: PreferenceLookup, error: Exception
    ) -> Action:
        """Fall back to web search after the zone could not be resolved."""
        if isinstance(error, RecordLookupException):
            logger.warning(
                "Error querying records for '%s'. Falling back to web search: %s",
                query,
                error,
            )
        else:
            logger.exception(
                "Unhandled error during resolution of '%s'. Falling back to web search",
                query,
            )
        sentry_sdk.capture_exception(error)
        await self.womp()
        self.increment("sep.resolve.degraded", {"exception": type(error).__name__})
        return await self.search_fallback(query, preference_lookup, cause=str(error))

    async def womp(self) -> None:
        if self.health_gauge is not None:
            await self.health_gauge.womp()

    def increment(self, name: str, tag_dict: Optional[Dict[str, Any]] = None) -> None:
        self.emit(self.metrics_client.increment, name, 1, tag_dict)

    def emit(
        self,
        record: Callable[..., None],
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Metrics never change the outcome of a resolution.
        try:
            record(name, value, tag_dict=tag_dict)
        except Exception as e:
            logger.warning("Failed to record metric %s: %s", name, e)
