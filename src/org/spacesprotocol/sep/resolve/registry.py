"""Registry fallback for spaces without a zone.

Asks the spaces daemon (spaced) for a space's covenant over JSON-RPC and maps
the covenant to an action. Spaces in transfer or open for bidding get an
informational page; everything else, including registry failures, is sent to
the explorer.
"""

import asyncio
import logging
from typing import Any

from aiohttp import ClientError, ClientSession
import sentry_sdk

from org.spacesprotocol.sep.resolve.model import (
    Action,
    ExplorerRedirect,
    InfoPage,
    InfoPageKind,
    RegistryException,
    RegistryState,
    RegistryStateKind,
)

logger = logging.getLogger(__name__)


class RegistryClient:
    """JSON-RPC client for the spaces daemon."""

    def __init__(self, session: ClientSession, url: str, timeout: float) -> None:
        self.session = session
        self.url = url
        self.timeout = timeout

    async def call(self, method: str, *params: Any) -> Any:
        """Perform a single JSON-RPC 2.0 call and return its result.

        Raises:
            RegistryException: On transport failure, timeout, non-200 status,
                malformed responses and JSON-RPC errors
        """
        request_body = {
            "jsonrpc": "2.0",
            "id": "1",
            "method": method,
            "params": list(params),
        }
        try:
            async with asyncio.timeout(self.timeout):
                async with self.session.post(self.url, json=request_body) as resp:
                    if resp.status != 200:
                        raise RegistryException.bad_status(resp.status)
                    data = await resp.json()
        except TimeoutError as e:
            raise RegistryException.unavailable(f"timed out after {self.timeout}s") from e
        except (ClientError, ValueError) as e:
            raise RegistryException.unavailable(str(e)) from e

        if not isinstance(data, dict):
            raise RegistryException.unavailable("response is not a JSON-RPC object")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RegistryException.rpc_error(error.get("message"), error.get("code"))
            raise RegistryException.rpc_error(error, None)

        return data.get("result")

    async def get_state(self, name: str) -> RegistryState:
        """Fetch the registry state of a space.

        Args:
            name: Space name, including its sigil

        Returns:
            RegistryState derived from the space's covenant type
        """
        space_info = await self.call("getspace", name)
        covenant = space_info.get("covenant") if isinstance(space_info, dict) else None
        if not isinstance(covenant, dict):
            return RegistryState.from_covenant(None)
        covenant_type = covenant.get("type")
        return RegistryState.from_covenant(
            str(covenant_type) if covenant_type is not None else None
        )


async def resolve_state(client: RegistryClient, query: str) -> RegistryState:
    """Resolve the registry state of a space, never raising.

    Registry failures collapse to an `other` state that records the error, so
    routing treats them like unknown spaces while logs keep them apart.
    """
    try:
        state = await client.get_state(query)
    except Exception as e:
        logger.warning("Error calling getspace for %s: %s", query, e)
        sentry_sdk.capture_exception(e)
        return RegistryState.failed(str(e))

    if state.kind == RegistryStateKind.other:
        if state.state_name is None:
            logger.info("Space info for '%s' has no covenant", query)
        else:
            logger.info("Space '%s' state is '%s'", query, state.state_name)
    return state


def registry_action(state: RegistryState, query: str) -> Action:
    if state.kind == RegistryStateKind.transfer:
        return InfoPage(kind=InfoPageKind.transfer, subject=query)
    if state.kind == RegistryStateKind.bid:
        return InfoPage(kind=InfoPageKind.bid, subject=query)
    return ExplorerRedirect(subject=query)
