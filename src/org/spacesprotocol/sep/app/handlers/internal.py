import logging
from aiohttp import web

from org.spacesprotocol.sep.app.config import (
    HealthGaugeAppKey,
    ResolverAppKey,
)
from org.spacesprotocol.sep.app.handlers.helpers import internal_error_response
from org.spacesprotocol.sep.resolve.model import ActionAdapter

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    health_gauge = request.app[HealthGaugeAppKey]
    if await health_gauge.is_healthy():
        return web.Response(status=200)
    return web.Response(status=503)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)


async def handle_internal_resolve(request: web.Request):
    """
    Resolve each `q` parameter and return the actions as JSON, without acting on them.

    An optional `search` parameter stands in for the search preference cookie.
    """
    queries = [q.strip() for q in request.query.getall("q", []) if q.strip()]
    if len(queries) == 0:
        return web.json_response([])

    search_template = request.query.get("search")
    resolver = request.app[ResolverAppKey]

    results = []
    try:
        for query in queries:
            action = await resolver.resolve(query, lambda: search_template)
            results.append(
                {"query": query, "action": ActionAdapter.dump_python(action, mode="json")}
            )
    except Exception as e:
        return await internal_error_response(request, e, "handle_internal_resolve")
    return web.json_response(results)
