import asyncio
import json
import logging
import re
from typing import NoReturn, Optional
from aiohttp import ClientError, ClientSession, web
import sentry_sdk

from org.spacesprotocol.sep.app.config import (
    ExternalAddressAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    SessionAppKey,
    SettingsAppKey,
)

logger = logging.getLogger(__name__)

IPV4_PATTERN = re.compile(r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\b")


def parse_external_address(body: str) -> Optional[str]:
    """
    Extract an IPv4 address from an address discovery response.

    Accepts a JSON object with an "ip" field, a JSON string, or any text containing an
    address, such as the HTML page returned by checkip.dyndns.org.
    """
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = body

    if isinstance(parsed, dict):
        ip = parsed.get("ip")
        return str(ip) if ip else None

    if isinstance(parsed, str):
        match = IPV4_PATTERN.search(parsed)
        if match is not None:
            return match.group(1)

    return None


async def discover_external_address(
    http_session: ClientSession, url: str, timeout: float
) -> Optional[str]:
    try:
        async with asyncio.timeout(timeout):
            async with http_session.get(url) as resp:
                if resp.status != 200:
                    logger.warning("Error getting IP address: status %s", resp.status)
                    return None
                body = await resp.text()
    except (TimeoutError, ClientError) as e:
        logger.warning("Error getting IP address: %s", e)
        return None

    address = parse_external_address(body)
    if address is None:
        logger.warning("Could not extract IP address from data: %r", body[:200])
    return address


async def external_address_task(app: web.Application) -> None:
    """
    Discover the public IP address once and store it in the application context.
    """

    settings = app[SettingsAppKey]

    logger.info("Starting IP address lookup...")
    try:
        address = await discover_external_address(
            app[SessionAppKey],
            settings.external_address_url,
            settings.external_address_timeout,
        )
    except Exception as e:
        sentry_sdk.capture_exception(e)
        logger.exception("Unexpected error during IP address lookup")
        return

    if address is None:
        return

    app[ExternalAddressAppKey] = address
    logger.info("Public IP address: %s", address)
    logger.info("Search Engine URL: http://%s/?q=%%s", address)


async def report_health(app: web.Application) -> None:
    """Publish the current health gauge value as a metrics gauge."""
    value = await app[HealthGaugeAppKey].value()
    app[MetricsClientAppKey].gauge("sep.health.value", value)


async def tick_health_task(app: web.Application) -> NoReturn:
    """
    Tick the health gauge every interval, reducing the health score by 1 each time,
    and report the resulting value.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    interval = app[SettingsAppKey].health_tick_interval
    while True:
        await health_gauge.tick()
        await report_health(app)
        await asyncio.sleep(interval)
