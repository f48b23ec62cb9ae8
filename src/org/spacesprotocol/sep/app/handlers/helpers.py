import json
import logging
import traceback
from typing import Any, Dict
from aiohttp import web
import aiohttp_jinja2
import sentry_sdk

from org.spacesprotocol.sep.app.config import (
    HealthGaugeAppKey,
    SettingsAppKey,
)
from org.spacesprotocol.sep.resolve.model import (
    Action,
    Error,
    ErrorKind,
    ExplorerRedirect,
    InfoPage,
    RawZone,
    Redirect,
    SearchRedirect,
    strip_sigil,
)

logger = logging.getLogger(__name__)


def location_for(target: str) -> str:
    """
    Location header value for a redirect target.

    Targets from A records and bare TXT paths carry no scheme and are served over http.
    """
    if "://" in target:
        return target
    return f"http://{target}"


def explorer_location(explorer_url: str, subject: str) -> str:
    return explorer_url + strip_sigil(subject)


def search_form_context(request: web.Request, query: str) -> Dict[str, Any]:
    settings = request.app[SettingsAppKey]
    return {
        "query": query,
        "search_engines": settings.search_engines(),
    }


async def action_response(
    request: web.Request, query: str, action: Action
) -> web.StreamResponse:
    """
    Turn a resolved action into the HTTP response for it.

    Redirects are raised as HTTPFound. Informational pages and the search engine
    selection form are rendered from templates; an empty zone is echoed as JSON.
    """
    settings = request.app[SettingsAppKey]

    if isinstance(action, Redirect):
        logger.info("%s is redirecting to: %s", query, location_for(action.target))
        raise web.HTTPFound(location_for(action.target))

    if isinstance(action, SearchRedirect):
        raise web.HTTPFound(action.url)

    if isinstance(action, ExplorerRedirect):
        location = explorer_location(settings.explorer_url, action.subject)
        logger.info("Redirecting to Spaces Explorer: %s", location)
        raise web.HTTPFound(location)

    if isinstance(action, InfoPage):
        context = {
            "query": action.subject,
            "pinning_url": settings.pinning_url,
            "explorer_url": explorer_location(settings.explorer_url, action.subject),
        }
        return await aiohttp_jinja2.render_template_async(
            f"{action.kind.value}.html", request, context=context
        )

    if isinstance(action, RawZone):
        return web.json_response(action.zone.model_dump(mode="json"))

    if isinstance(action, Error) and action.kind == ErrorKind.missing_preference:
        return await aiohttp_jinja2.render_template_async(
            "select_engine.html", request, context=search_form_context(request, query)
        )

    return web.json_response(
        status=500, data={"error": action.detail, "error_type": action.kind.value}
    )


async def internal_error_response(
    request: web.Request, e: Exception, handler_name: str
) -> web.Response:
    """
    Log, report and count an unexpected handler failure, returning a 500 JSON body.

    Details of the failure are only included in debug mode.
    """
    logger.error(
        f"Unexpected error in {handler_name}: {type(e).__name__}: {str(e)}\n"
        f"Traceback:\n{traceback.format_exc()}"
    )
    sentry_sdk.capture_exception(e)
    await request.app[HealthGaugeAppKey].womp()

    settings = request.app.get(SettingsAppKey)
    if settings and getattr(settings, "debug", False):
        response_body = {
            "error": "Internal Server Error",
            "error_type": type(e).__name__,
            "error_message": str(e),
            "traceback": traceback.format_exc(),
        }
    else:
        response_body = {"error": "Internal Server Error", "error_type": type(e).__name__}

    return web.Response(
        status=500, body=json.dumps(response_body), content_type="application/json"
    )
