"""
Tests for the browser-facing and internal HTTP handlers.

The application is built with create_app and driven through the pytest-aiohttp test
client. A Resolver over stub backends replaces the network-backed one, so every test
exercises the real resolution order while controlling what the backends return.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from org.spacesprotocol.sep.app.config import (
    ExternalAddressAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolverAppKey,
    SEARCH_COOKIE_NAME,
)
from org.spacesprotocol.sep.app.handlers.helpers import location_for
from org.spacesprotocol.sep.app.metrics import NoOpMetricsClient
from org.spacesprotocol.sep.app.server import create_app
from org.spacesprotocol.sep.resolve.model import RegistryState
from org.spacesprotocol.sep.resolve.resolver import Resolver
from tests.test_helpers import (
    StubRecordLookup,
    StubRegistryClient,
    a_record,
    make_zone,
    txt_record,
)

SEARCH_TEMPLATE = "https://search.example/?q=%s"


def search_cookie(template: str = SEARCH_TEMPLATE):
    return {"Cookie": f"{SEARCH_COOKIE_NAME}={template}"}


@pytest.fixture
def make_client(aiohttp_client, settings):
    """Build a test client around the given resolver."""

    async def _make(resolver, app_setup=None):
        app = create_app(settings)
        app[ResolverAppKey] = resolver
        app[MetricsClientAppKey] = NoOpMetricsClient()
        if app_setup is not None:
            app_setup(app)
        return await aiohttp_client(app)

    return _make


def stub_resolver(zones=None, state=None, error=None):
    return Resolver(StubRecordLookup(zones, error=error), StubRegistryClient(state))


class TestLocationFor:
    def test_scheme_is_kept(self):
        assert location_for("https://site.example/") == "https://site.example/"

    def test_bare_target_gets_http(self):
        assert location_for("10.0.0.5") == "http://10.0.0.5"


class TestHandleSearch:
    """Test suite for GET /."""

    @pytest.mark.asyncio
    async def test_missing_query_shows_usage(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/")

        assert resp.status == 200
        body = await resp.text()
        assert 'Query parameter "q" is required' in body
        assert "http://127.0.0.1:3000/?q=@space" in body

    @pytest.mark.asyncio
    async def test_usage_prefers_external_address(self, make_client):
        def set_address(app):
            app[ExternalAddressAppKey] = "203.0.113.7"

        client = await make_client(stub_resolver(), set_address)

        resp = await client.get("/", params={"q": "   "})

        assert "http://203.0.113.7/?q=@space" in await resp.text()

    @pytest.mark.asyncio
    async def test_path_record_redirects(self, make_client):
        zone = make_zone(txt_record(b":path:https://site.example/home"))
        client = await make_client(stub_resolver({"@example": zone}))

        resp = await client.get("/", params={"q": "@example"}, allow_redirects=False)

        assert resp.status == 302
        assert resp.headers["Location"] == "https://site.example/home"

    @pytest.mark.asyncio
    async def test_a_record_redirects_over_http(self, make_client):
        zone = make_zone(a_record("10.0.0.5"))
        client = await make_client(stub_resolver({"@example": zone}))

        resp = await client.get("/", params={"q": "@example"}, allow_redirects=False)

        assert resp.status == 302
        assert resp.headers["Location"] == "http://10.0.0.5"

    @pytest.mark.asyncio
    async def test_inert_zone_redirects_to_search(self, make_client):
        zone = make_zone(txt_record(b"nothing-useful"), name="@bar")
        client = await make_client(stub_resolver({"@bar": zone}))

        resp = await client.get(
            "/", params={"q": "@bar"}, headers=search_cookie(), allow_redirects=False
        )

        assert resp.status == 302
        assert resp.headers["Location"] == "https://search.example/?q=bar"

    @pytest.mark.asyncio
    async def test_inert_zone_without_cookie_shows_selection_form(self, make_client):
        zone = make_zone(txt_record(b"nothing-useful"), name="@bar")
        client = await make_client(stub_resolver({"@bar": zone}))

        resp = await client.get("/", params={"q": "@bar"}, allow_redirects=False)

        assert resp.status == 200
        body = await resp.text()
        assert 'action="/set_search_cookie"' in body
        assert 'name="q" value="@bar"' in body
        assert "DuckDuckGo" in body

    @pytest.mark.asyncio
    async def test_transfer_shows_info_page(self, make_client):
        client = await make_client(
            stub_resolver(state=RegistryState.from_covenant("transfer"))
        )

        resp = await client.get("/", params={"q": "@example"}, headers=search_cookie())

        assert resp.status == 200
        body = await resp.text()
        assert "Are you the owner of @example?" in body
        assert "https://pin.example/pin/" in body

    @pytest.mark.asyncio
    async def test_bid_shows_info_page(self, make_client):
        client = await make_client(stub_resolver(state=RegistryState.from_covenant("bid")))

        resp = await client.get("/", params={"q": "@example"})

        assert resp.status == 200
        body = await resp.text()
        assert "Are you bidding on @example?" in body
        assert "https://explorer.example/space/example" in body

    @pytest.mark.asyncio
    async def test_unknown_space_redirects_to_explorer(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/", params={"q": "@foo"}, allow_redirects=False)

        assert resp.status == 302
        assert resp.headers["Location"] == "https://explorer.example/space/foo"

    @pytest.mark.asyncio
    async def test_empty_zone_is_echoed_as_json(self, make_client):
        client = await make_client(stub_resolver({"@example": make_zone()}))

        resp = await client.get("/", params={"q": "@example"})

        assert resp.status == 200
        assert await resp.json() == {"name": "@example", "authorities": []}

    @pytest.mark.asyncio
    @patch("org.spacesprotocol.sep.app.handlers.helpers.sentry_sdk")
    async def test_unexpected_error_returns_500(self, mock_sentry, make_client):
        resolver = Mock()
        resolver.resolve = AsyncMock(side_effect=RuntimeError("boom"))
        client = await make_client(resolver)

        resp = await client.get("/", params={"q": "@example"})

        assert resp.status == 500
        assert await resp.json() == {
            "error": "Internal Server Error",
            "error_type": "RuntimeError",
        }
        mock_sentry.capture_exception.assert_called_once()
        assert await client.app[HealthGaugeAppKey].value() == 1


class TestSearchCookie:
    """Test suite for the search preference endpoints."""

    @pytest.mark.asyncio
    async def test_set_cookie_continues_search(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.post(
            "/set_search_cookie",
            data={"search_engine_url": SEARCH_TEMPLATE, "q": "@bar"},
            allow_redirects=False,
        )

        assert resp.status == 302
        assert resp.headers["Location"] == "/?q=%40bar"
        assert resp.cookies[SEARCH_COOKIE_NAME].value == SEARCH_TEMPLATE

    @pytest.mark.asyncio
    async def test_custom_engine_overrides_selection(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.post(
            "/set_search_cookie",
            data={
                "search_engine_url": SEARCH_TEMPLATE,
                "search_engine_custom": "https://custom.example/find?term=%s",
            },
            allow_redirects=False,
        )

        assert resp.status == 302
        assert resp.headers["Location"] == "/"
        assert (
            resp.cookies[SEARCH_COOKIE_NAME].value
            == "https://custom.example/find?term=%s"
        )

    @pytest.mark.asyncio
    async def test_missing_engine_is_rejected(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.post(
            "/set_search_cookie",
            data={"search_engine_url": " ", "search_engine_custom": ""},
            allow_redirects=False,
        )

        assert resp.status == 400
        assert SEARCH_COOKIE_NAME not in resp.cookies

    @pytest.mark.asyncio
    async def test_del_cookie(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/del_search_cookie", headers=search_cookie())

        assert resp.status == 200
        assert "deleted" in await resp.text()
        assert resp.cookies[SEARCH_COOKIE_NAME]["max-age"] == "0"

    @pytest.mark.asyncio
    async def test_del_cookie_without_cookie(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/del_search_cookie")

        assert resp.status == 200
        assert "not found" in await resp.text()


class TestInternalHandlers:
    """Test suite for the /internal endpoints."""

    @pytest.mark.asyncio
    async def test_alive(self, make_client):
        client = await make_client(stub_resolver())
        resp = await client.get("/internal/alive")
        assert resp.status == 200

    @pytest.mark.asyncio
    async def test_ready_follows_health_gauge(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/internal/ready")
        assert resp.status == 200

        await client.app[HealthGaugeAppKey].womp(101)
        resp = await client.get("/internal/ready")
        assert resp.status == 503

    @pytest.mark.asyncio
    async def test_resolve_returns_actions(self, make_client):
        zones = {
            "@example": make_zone(a_record("10.0.0.5")),
            "@bar": make_zone(txt_record(b"nothing-useful"), name="@bar"),
        }
        client = await make_client(stub_resolver(zones))

        resp = await client.get(
            "/internal/api/resolve",
            params=[("q", "@example"), ("q", "@bar"), ("search", SEARCH_TEMPLATE)],
        )

        assert resp.status == 200
        assert await resp.json() == [
            {"query": "@example", "action": {"action": "redirect", "target": "10.0.0.5"}},
            {
                "query": "@bar",
                "action": {
                    "action": "search_redirect",
                    "url": "https://search.example/?q=bar",
                },
            },
        ]

    @pytest.mark.asyncio
    async def test_resolve_without_queries(self, make_client):
        client = await make_client(stub_resolver())

        resp = await client.get("/internal/api/resolve")

        assert await resp.json() == []
