"""Web search fallback for spaces whose zone carries no directive."""

import logging
from typing import Optional
from urllib.parse import quote

from org.spacesprotocol.sep.resolve.model import (
    MissingPreferenceException,
    SearchRedirect,
    strip_sigil,
)

logger = logging.getLogger(__name__)

QUERY_PLACEHOLDER = "%s"

# Left unescaped, matching how browsers encode URI components.
URI_COMPONENT_SAFE = "!*'()"


def build_search_redirect(
    query: str, preference: Optional[str], cause: str = ""
) -> SearchRedirect:
    """Build a web search redirect from the caller's search template.

    The sigil-stripped, URL-encoded query replaces the first %s in the
    template.

    Args:
        query: Space query, with or without its sigil
        preference: Search URL template chosen by the caller, if any
        cause: Why the search fallback was reached, reported when it fails

    Returns:
        SearchRedirect to the filled-in template

    Raises:
        MissingPreferenceException: If no template is available
    """
    if preference is None or len(preference.strip()) == 0:
        raise MissingPreferenceException.not_set(cause)

    search_term = quote(strip_sigil(query), safe=URI_COMPONENT_SAFE)
    search_url = preference.replace(QUERY_PLACEHOLDER, search_term, 1)
    logger.info("Redirecting to web search: %s", search_url)
    return SearchRedirect(url=search_url)
