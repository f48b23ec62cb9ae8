"""
Configuration Module for SEP

This module defines the configuration system for the SEP (Spaces Search Engine Proxy)
service, using Pydantic for settings validation and dependency injection through AppKeys.

The Settings class is loaded from environment variables, keeping the variable names the
proxy has always used (SPACES_SEP_HOST, SPACED_PORT, SPACES_EXPLORER_URL, ...), with
defaults suitable for a local spaces node. All application components access settings
and shared resources through typed AppKeys instead of module globals.

Key configuration areas include:
- Listening address of the proxy
- Record gateway and spaces daemon endpoints, with per-call timeouts
- Explorer and pinning service links
- Stock search engine templates offered to users
- Optional Redis action cache
- Monitoring and observability
"""

import asyncio
from typing import Final, List, Optional, Tuple
import logging
from pydantic import AliasChoices, Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict
from aiohttp import web
from aiohttp import ClientSession
from redis import asyncio as redis

from org.spacesprotocol.sep.app.metrics import MetricsClient
from org.spacesprotocol.sep.model.health import HealthGauge
from org.spacesprotocol.sep.resolve.resolver import Resolver


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the SEP service.

    Values are read from environment variables. Where the proxy historically used a
    different variable name than the field name, the historical name is accepted through
    a validation alias, so SPACES_SEP_PORT and PORT both set `sep_port`.
    """

    model_config = SettingsConfigDict(populate_by_name=True)

    debug: bool = False
    """
    Enable debug mode for verbose logging and detailed error bodies.
    Set with DEBUG=true environment variable.
    """

    sep_host: str = Field(
        "127.0.0.1", validation_alias=AliasChoices("spaces_sep_host", "sep_host")
    )
    """
    Host the proxy is reachable on, used in the usage page example URL.
    Set with SPACES_SEP_HOST environment variable.
    """

    sep_port: int = Field(
        3000, validation_alias=AliasChoices("spaces_sep_port", "port", "sep_port")
    )
    """
    HTTP port for the proxy to listen on.
    Set with SPACES_SEP_PORT or PORT environment variables.
    """

    spaced_host: str = "127.0.0.1"
    """
    Host of the spaces daemon (spaced) JSON-RPC endpoint.
    Set with SPACED_HOST environment variable.
    """

    spaced_port: int = 7225
    """
    Port of the spaces daemon (spaced) JSON-RPC endpoint.
    Set with SPACED_PORT environment variable.
    """

    records_url: str = Field(
        "http://127.0.0.1:7226",
        validation_alias=AliasChoices("spaces_records_url", "records_url"),
    )
    """
    Base URL of the records gateway that serves the latest DNS event for each space.
    Set with SPACES_RECORDS_URL environment variable.
    """

    lookup_timeout: float = 10.0
    """Timeout in seconds for a record lookup. Set with LOOKUP_TIMEOUT."""

    registry_timeout: float = 10.0
    """Timeout in seconds for a spaces daemon call. Set with REGISTRY_TIMEOUT."""

    explorer_url: str = Field(
        "https://explorer.spacesprotocol.org/space/",
        validation_alias=AliasChoices("spaces_explorer_url", "explorer_url"),
    )
    """
    Explorer base URL; the space name without its sigil is appended.
    Set with SPACES_EXPLORER_URL environment variable.
    """

    pinning_url: str = Field(
        "http://70.251.209.207/pin/",
        validation_alias=AliasChoices("spaces_pinning_url", "pinning_url"),
    )
    """
    Pinning service URL suggested to owners of spaces without records.
    Set with SPACES_PINNING_URL environment variable.
    """

    search_engine_google: str = Field(
        "{google:baseURL}search?q=%s&{google:RLZ}{google:originalQueryForSuggestion}"
        "{google:assistedQueryStats}{google:searchFieldtrialParameter}{google:language}"
        "{google:prefetchSource}{google:searchClient}{google:sourceId}"
        "{google:contextualSearchVersion}ie={inputEncoding}",
        validation_alias=AliasChoices("spaces_sep_google", "search_engine_google"),
    )
    search_engine_duckduckgo: str = Field(
        "https://duckduckgo.com/?q=%s",
        validation_alias=AliasChoices("spaces_sep_duckduckgo", "search_engine_duckduckgo"),
    )
    search_engine_bing: str = Field(
        "https://www.bing.com/search?q=%s",
        validation_alias=AliasChoices("spaces_sep_bing", "search_engine_bing"),
    )
    search_engine_yahoo: str = Field(
        "https://search.yahoo.com/search{google:pathWildcard}?ei={inputEncoding}&fr=crmas_sfp&p=%s",
        validation_alias=AliasChoices("spaces_sep_yahoo", "search_engine_yahoo"),
    )
    search_engine_yandex: str = Field(
        "https://yandex.com/{yandex:searchPath}?text=%s",
        validation_alias=AliasChoices("spaces_sep_yandex", "search_engine_yandex"),
    )
    """
    Stock search engine templates offered on the preference form.
    Set with SPACES_SEP_GOOGLE, SPACES_SEP_DUCKDUCKGO, SPACES_SEP_BING,
    SPACES_SEP_YAHOO and SPACES_SEP_YANDEX environment variables.
    """

    redis_dsn: Optional[RedisDsn] = Field(
        None, validation_alias=AliasChoices("redis_dsn", "redis_url")
    )
    """
    Redis connection string for the action cache. The cache is disabled when unset.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    action_cache_ttl: int = 60
    """Lifetime in seconds of cached actions. Set with ACTION_CACHE_TTL."""

    external_address_url: str = "http://checkip.dyndns.org/"
    """
    Service used to discover the proxy's public IP address at startup.
    Set with EXTERNAL_ADDRESS_URL environment variable.
    """

    external_address_timeout: float = 60.0
    """Timeout in seconds for external address discovery."""

    health_tick_interval: float = 30.0
    """Seconds between health gauge decrements."""

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "none"
    """Metrics backend, 'telegraf' or 'none'. Set with METRICS_BACKEND."""

    statsd_host: str = Field(
        "telegraf", validation_alias=AliasChoices("telegraf_host", "statsd_host")
    )
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(
        8125, validation_alias=AliasChoices("telegraf_port", "statsd_port")
    )
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    @property
    def spaced_url(self) -> str:
        return f"http://{self.spaced_host}:{self.spaced_port}"

    def search_engines(self) -> List[Tuple[str, str]]:
        """Stock search engines as (label, template) pairs, in display order."""
        return [
            ("Google", self.search_engine_google),
            ("DuckDuckGo", self.search_engine_duckduckgo),
            ("Bing", self.search_engine_bing),
            ("Yahoo", self.search_engine_yahoo),
            ("Yandex", self.search_engine_yandex),
        ]

    def warn_unset(self) -> List[str]:
        """Log a warning for each connection setting left at its default."""
        unset = []
        for field_name, env_name in (
            ("sep_host", "SPACES_SEP_HOST"),
            ("sep_port", "SPACES_SEP_PORT"),
            ("spaced_host", "SPACED_HOST"),
            ("spaced_port", "SPACED_PORT"),
        ):
            if field_name not in self.model_fields_set:
                logger.warning(
                    "%s environment variable not set. Using default: %s",
                    env_name,
                    getattr(self, field_name),
                )
                unset.append(env_name)
        return unset


SEARCH_COOKIE_NAME = "spaces_search_engine_proxy"
"""Cookie holding the user's search URL template."""

SEARCH_COOKIE_MAX_AGE = 365 * 24 * 60 * 60
"""Search preference cookie lifetime in seconds (one year)."""

# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

RedisClientAppKey: Final = web.AppKey("redis_client", redis.Redis)
"""AppKey for accessing the Redis client, present only when a cache is configured"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for the metrics client"""

ResolverAppKey: Final = web.AppKey("resolver", Resolver)
"""AppKey for the space resolver"""

ExternalAddressAppKey: Final = web.AppKey("external_address", str)
"""AppKey for the discovered public IP address, present once discovery succeeds"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that drains the health gauge"""

ExternalAddressTaskAppKey: Final = web.AppKey("external_address_task", asyncio.Task[None])
"""AppKey for the background task that discovers the public IP address"""
