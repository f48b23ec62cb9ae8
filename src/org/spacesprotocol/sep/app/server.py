import asyncio
import contextlib
import os
import logging
from time import time
from typing import (
    Optional,
)
import jinja2
from aiohttp import web
import aiohttp_jinja2
import aiohttp
import redis.asyncio as redis
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from org.spacesprotocol.sep.app.config import (
    ExternalAddressTaskAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    RedisClientAppKey,
    ResolverAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from org.spacesprotocol.sep.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
    handle_internal_resolve,
)
from org.spacesprotocol.sep.app.handlers.search import (
    handle_del_search_cookie,
    handle_search,
    handle_set_search_cookie,
)
from org.spacesprotocol.sep.app.metrics import create_metrics_client
from org.spacesprotocol.sep.app.tasks import external_address_task, tick_health_task
from org.spacesprotocol.sep.model.health import HealthGauge
from org.spacesprotocol.sep.resolve.cache import ActionCache
from org.spacesprotocol.sep.resolve.records import HttpRecordLookup
from org.spacesprotocol.sep.resolve.registry import RegistryClient
from org.spacesprotocol.sep.resolve.resolver import Resolver

logger = logging.getLogger(__name__)

TEMPLATES_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    action_cache: Optional[ActionCache] = None
    if settings.redis_dsn is not None:
        app[RedisClientAppKey] = redis.Redis.from_url(str(settings.redis_dsn))
        action_cache = ActionCache(app[RedisClientAppKey], settings.action_cache_ttl)

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    app[ResolverAppKey] = Resolver(
        HttpRecordLookup(
            app[SessionAppKey], settings.records_url, settings.lookup_timeout
        ),
        RegistryClient(
            app[SessionAppKey], settings.spaced_url, settings.registry_timeout
        ),
        metrics_client=metrics_client,
        action_cache=action_cache,
        health_gauge=app[HealthGaugeAppKey],
    )

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(tick_health_task(app))
    app[ExternalAddressTaskAppKey] = asyncio.create_task(external_address_task(app))

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()
    app[ExternalAddressTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[ExternalAddressTaskAppKey]

    await app[SessionAppKey].close()
    if RedisClientAppKey in app:
        await app[RedisClientAppKey].aclose()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "sep.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "sep.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "sep.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def create_app(settings: Settings) -> web.Application:
    """
    Build the application with its routes, middlewares and templates.

    Shared resources (HTTP session, Redis, metrics client, resolver) are not created
    here; start_web_server adds the cleanup context that owns them.
    """
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()

    app.add_routes(
        [
            web.get("/", handle_search),
            web.post("/set_search_cookie", handle_set_search_cookie),
            web.get("/del_search_cookie", handle_del_search_cookie),
        ]
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
            web.get("/internal/api/resolve", handle_internal_resolve),
        ]
    )

    _ = aiohttp_jinja2.setup(
        app,
        enable_async=True,
        loader=jinja2.FileSystemLoader(TEMPLATES_PATH),
    )

    return app


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    settings.warn_unset()
    logger.info("sep_host: %s", settings.sep_host)
    logger.info("sep_port: %s", settings.sep_port)
    logger.info("spaced_host: %s", settings.spaced_host)
    logger.info("spaced_port: %s", settings.spaced_port)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()]
        )

    app = create_app(settings)
    app.cleanup_ctx.append(background_tasks)

    return app
