"""Authority record interpretation.

Selects the first actionable directive from a zone's authority records.
Records are scanned strictly in order and the first A record or recognised
TXT entry ends the scan.
"""

import logging
from typing import Any, Optional

from org.spacesprotocol.sep.resolve.model import (
    ARecord,
    Redirect,
    TxtRecord,
    Zone,
)

logger = logging.getLogger(__name__)

PATH_PREFIX = ":path:"
PKAR_PREFIX = ":pkar:"


def pkar_target(rest: str) -> str:
    """Directory style target for a :pkar: entry, ending in exactly one "/"."""
    if rest.endswith("/"):
        return rest
    return rest + "/"


def interpret_txt_entry(record_name: str, entry: Any) -> Optional[Redirect]:
    """Interpret a single TXT entry.

    Args:
        record_name: Owner name of the TXT record, used for logging
        entry: Raw entry value, normally a byte string

    Returns:
        Redirect if the entry carries a :path: or :pkar: directive, None otherwise
    """
    if not isinstance(entry, (bytes, bytearray)):
        logger.debug("%s txt (unexpected type %s): %r", record_name, type(entry).__name__, entry)
        return None

    try:
        text = bytes(entry).decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("%s txt entry is not valid UTF-8, skipping: %r", record_name, entry)
        return None

    logger.debug("%s txt: %s", record_name, text)

    if text.startswith(PATH_PREFIX):
        return Redirect(target=text[len(PATH_PREFIX):])
    if text.startswith(PKAR_PREFIX):
        return Redirect(target=pkar_target(text[len(PKAR_PREFIX):]))

    logger.debug("No path or pkar found in TXT: %s", text)
    return None


def interpret(zone: Zone) -> Optional[Redirect]:
    """Select the first actionable directive in a zone.

    A records redirect to their target. TXT records are scanned entry by entry
    and the first :path: or :pkar: entry wins. Everything else is inert.

    Args:
        zone: Decoded zone, possibly with no authority records

    Returns:
        Redirect for the first actionable record, None if no record is actionable
    """
    for authority in zone.authorities:
        if isinstance(authority, ARecord):
            logger.info("%s is redirecting to: %s", authority.name or zone.name, authority.target)
            return Redirect(target=authority.target)

        if isinstance(authority, TxtRecord):
            for entry in authority.entries:
                redirect = interpret_txt_entry(authority.name or zone.name, entry)
                if redirect is not None:
                    logger.info("%s is redirecting to: %s", authority.name or zone.name, redirect.target)
                    return redirect
            continue

        logger.debug("%s: ignoring %s record", zone.name, authority.kind)

    return None
