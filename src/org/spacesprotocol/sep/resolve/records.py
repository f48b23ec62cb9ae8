"""Record lookup for spaces.

Fetches the latest DNS event published for a space from the records gateway
and decodes its DNS wire payload into a Zone. The authority section of the
decoded message is the ordered list of directives for the space.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

from aiohttp import ClientError, ClientSession
from dnslib import DNSRecord, QTYPE
from yarl import URL

from org.spacesprotocol.sep.resolve.model import (
    ARecord,
    AuthorityRecord,
    OtherRecord,
    RecordLookupException,
    TxtRecord,
    Zone,
)

logger = logging.getLogger(__name__)

DNS_EVENT_KIND = 871222


class RecordLookup(Protocol):
    """Looks up the zone published for a space.

    Implementations return None when no zone exists for the name and raise
    RecordLookupException when the backend cannot answer.
    """

    async def lookup(self, name: str) -> Optional[Zone]: ...


def rtype_name(rtype: int) -> str:
    try:
        return str(QTYPE[rtype])
    except Exception:
        return f"TYPE{rtype}"


def decode_authority(rr: Any) -> AuthorityRecord:
    name = str(rr.rname)
    if rr.rtype == QTYPE.A:
        return ARecord(name=name, target=str(rr.rdata))
    if rr.rtype == QTYPE.TXT:
        return TxtRecord(name=name, entries=list(rr.rdata.data))
    return OtherRecord(kind=rtype_name(rr.rtype), name=name)


def decode_zone(name: str, wire: bytes) -> Zone:
    """Decode a DNS wire message into a Zone.

    Args:
        name: Space the message was published for
        wire: DNS message in wire format

    Returns:
        Zone holding the message's authority records in order

    Raises:
        RecordLookupException: If the message cannot be parsed
    """
    try:
        message = DNSRecord.parse(wire)
    except Exception as e:
        raise RecordLookupException.undecodable(str(e)) from e

    authorities: List[AuthorityRecord] = [decode_authority(rr) for rr in message.auth]
    return Zone(name=name, authorities=authorities)


def event_wire(event: Dict[str, Any]) -> bytes:
    """Extract the DNS wire bytes from a records gateway event.

    Binary events carry hex encoded content, all others base64.
    """
    content = event.get("content")
    if not isinstance(content, str):
        raise RecordLookupException.undecodable("event content is not a string")
    try:
        if event.get("binary_content", False):
            return bytes.fromhex(content)
        return base64.b64decode(content, validate=True)
    except (ValueError, binascii.Error) as e:
        raise RecordLookupException.undecodable(str(e)) from e


def record_path_segment(name: str) -> str:
    """
    Escape a name as a single URL path segment.

    Queries are free-form address bar text, so `/`, `?`, `#`, `%` and spaces
    must not change which name the gateway looks up.
    """
    segment = quote(name, safe="@")
    if segment in (".", ".."):
        # Dot segments would be collapsed by URL normalization.
        return segment.replace(".", "%2E")
    return segment


class HttpRecordLookup:
    """RecordLookup backed by the records gateway HTTP API."""

    def __init__(self, session: ClientSession, records_url: str, timeout: float) -> None:
        self.session = session
        self.records_url = records_url.rstrip("/")
        self.timeout = timeout

    async def lookup(self, name: str) -> Optional[Zone]:
        # Already escaped; the URL must not be requoted or dot-normalized.
        url = URL(f"{self.records_url}/events/{record_path_segment(name)}", encoded=True)
        params = {"kind": str(DNS_EVENT_KIND), "latest": "true"}
        try:
            async with asyncio.timeout(self.timeout):
                async with self.session.get(url, params=params) as resp:
                    if resp.status == 404:
                        logger.info("No records found for %s", name)
                        return None
                    if resp.status != 200:
                        raise RecordLookupException.bad_status(resp.status)
                    body = await resp.json()
        except TimeoutError as e:
            raise RecordLookupException.unavailable(
                f"timed out after {self.timeout}s"
            ) from e
        except (ClientError, ValueError) as e:
            raise RecordLookupException.unavailable(str(e)) from e

        event = body.get("event") if isinstance(body, dict) else None
        if not event:
            logger.info("No records found for %s", name)
            return None

        return decode_zone(name, event_wire(event))
