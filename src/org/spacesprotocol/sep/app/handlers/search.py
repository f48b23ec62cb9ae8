"""
Search Engine Proxy Handlers

This module implements the browser-facing endpoints of the proxy. Browsers are configured
to use the proxy as their search engine, so every address bar query arrives at `GET /`.

The handlers in this module provide the following endpoints:
- GET / - Resolve the `q` query parameter and respond with the resulting action
- POST /set_search_cookie - Store the user's search engine template in a cookie
- GET /del_search_cookie - Forget the user's search engine template

Queries that do not resolve to a space's site fall back to the search engine the user
chose. When no choice has been made yet, the selection form is shown instead and the
original query is carried through the form so the search continues after choosing.
"""

import logging
from typing import Optional
from urllib.parse import quote
from aiohttp import web
import aiohttp_jinja2

from org.spacesprotocol.sep.app.config import (
    ExternalAddressAppKey,
    ResolverAppKey,
    SEARCH_COOKIE_MAX_AGE,
    SEARCH_COOKIE_NAME,
    SettingsAppKey,
)
from org.spacesprotocol.sep.app.handlers.helpers import (
    action_response,
    internal_error_response,
)

logger = logging.getLogger(__name__)


def usage_example_url(request: web.Request) -> str:
    external_address = request.app.get(ExternalAddressAppKey)
    if external_address:
        return f"http://{external_address}/?q=@space"
    settings = request.app[SettingsAppKey]
    return f"http://{settings.sep_host}:{settings.sep_port}/?q=@space"


async def handle_search(request: web.Request) -> web.StreamResponse:
    query = request.query.get("q", "").strip()
    if len(query) == 0:
        return await aiohttp_jinja2.render_template_async(
            "usage.html", request, context={"example_url": usage_example_url(request)}
        )

    search_cookie: Optional[str] = request.cookies.get(SEARCH_COOKIE_NAME)
    resolver = request.app[ResolverAppKey]

    try:
        action = await resolver.resolve(query, lambda: search_cookie)
        return await action_response(request, query, action)
    except web.HTTPException:
        raise
    except Exception as e:
        return await internal_error_response(request, e, "handle_search")


async def handle_set_search_cookie(request: web.Request) -> web.Response:
    data = await request.post()
    search_engine_url = str(data.get("search_engine_url", "") or "").strip()
    search_engine_custom = str(data.get("search_engine_custom", "") or "").strip()
    query = str(data.get("q", "") or "").strip()

    final_search_engine_url = search_engine_custom or search_engine_url
    if len(final_search_engine_url) == 0:
        return web.Response(
            status=400,
            text="Search engine URL (either selected or custom) is required.",
        )

    redirect_url = f"/?q={quote(query, safe='')}" if query else "/"
    response = web.HTTPFound(redirect_url)
    response.set_cookie(
        SEARCH_COOKIE_NAME, final_search_engine_url, max_age=SEARCH_COOKIE_MAX_AGE
    )
    raise response


async def handle_del_search_cookie(request: web.Request) -> web.Response:
    if SEARCH_COOKIE_NAME in request.cookies:
        response = web.Response(text="Search engine preference cookie deleted.")
        response.del_cookie(SEARCH_COOKIE_NAME)
        return response
    return web.Response(text="Search engine preference cookie not found.")
