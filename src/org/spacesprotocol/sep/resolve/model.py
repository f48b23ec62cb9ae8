"""Data model for space resolution.

Zones and authority records produced by the record decoder, registry states
produced by the spaces daemon, and the actions the resolver hands to the web
layer. Every resolution yields exactly one Action.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

SPACE_SIGIL = "@"


def strip_sigil(query: str) -> str:
    """Remove a single leading space sigil from a query.

    Args:
        query: Raw query string, such as "@example"

    Returns:
        The query without its leading "@", or the query unchanged
    """
    return query.removeprefix(SPACE_SIGIL)


class ARecord(BaseModel):
    """Address record. Its target is a host name or IP address."""

    kind: Literal["A"] = "A"
    name: str = ""
    target: str


class TxtRecord(BaseModel):
    """Text record. Entries are normally byte strings."""

    kind: Literal["TXT"] = "TXT"
    name: str = ""
    entries: List[Any] = Field(default_factory=list)


class OtherRecord(BaseModel):
    """Any other record type carried in a zone. Never actionable."""

    kind: str
    name: str = ""


AuthorityRecord = Union[ARecord, TxtRecord, OtherRecord]


class Zone(BaseModel):
    """Decoded zone for one space.

    The order of authorities is their priority: earlier records win.
    """

    name: str
    authorities: List[AuthorityRecord] = Field(default_factory=list)


class RegistryStateKind(str, Enum):
    transfer = "transfer"
    bid = "bid"
    other = "other"


class RegistryState(BaseModel):
    """Ownership lifecycle state of a space according to the registry.

    An `other` state carries the covenant name when the registry reported one,
    nothing when the registry knows nothing about the space, and an error
    message when the registry could not be queried at all.
    """

    kind: RegistryStateKind
    state_name: Optional[str] = None
    error: Optional[str] = None

    @staticmethod
    def from_covenant(covenant_type: Optional[str]) -> "RegistryState":
        if covenant_type == RegistryStateKind.transfer.value:
            return RegistryState(kind=RegistryStateKind.transfer, state_name=covenant_type)
        if covenant_type == RegistryStateKind.bid.value:
            return RegistryState(kind=RegistryStateKind.bid, state_name=covenant_type)
        return RegistryState(kind=RegistryStateKind.other, state_name=covenant_type)

    @staticmethod
    def failed(error: str) -> "RegistryState":
        return RegistryState(kind=RegistryStateKind.other, error=error)


class InfoPageKind(str, Enum):
    transfer = "transfer"
    bid = "bid"


class ErrorKind(str, Enum):
    backend_unavailable = "backend_unavailable"
    malformed_record = "malformed_record"
    missing_preference = "missing_preference"


class Redirect(BaseModel):
    action: Literal["redirect"] = "redirect"
    target: str


class InfoPage(BaseModel):
    action: Literal["info_page"] = "info_page"
    kind: InfoPageKind
    subject: str


class ExplorerRedirect(BaseModel):
    action: Literal["explorer_redirect"] = "explorer_redirect"
    subject: str


class SearchRedirect(BaseModel):
    action: Literal["search_redirect"] = "search_redirect"
    url: str


class RawZone(BaseModel):
    action: Literal["raw_zone"] = "raw_zone"
    zone: Zone


class Error(BaseModel):
    action: Literal["error"] = "error"
    kind: ErrorKind
    detail: str


Action = Annotated[
    Union[Redirect, InfoPage, ExplorerRedirect, SearchRedirect, RawZone, Error],
    Field(discriminator="action"),
]

ActionAdapter: TypeAdapter[Action] = TypeAdapter(Action)


class ResolutionException(Exception):
    """
    Base exception for resolution failures.

    Carries the ErrorKind the failure maps to. Subclasses provide static
    constructors for specific failures with stable error codes.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class RecordLookupException(ResolutionException):
    """Raised when the record backend cannot produce an answer."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.backend_unavailable, message)

    @staticmethod
    def unavailable(msg: str = "") -> "RecordLookupException":
        """The record backend could not be reached or timed out."""
        return RecordLookupException(
            f"error-resolve-records-1000 Record backend unavailable: {msg}"
        )

    @staticmethod
    def bad_status(status: int) -> "RecordLookupException":
        """The record backend answered with an unexpected HTTP status."""
        return RecordLookupException(
            f"error-resolve-records-1001 Record backend returned status {status}"
        )

    @staticmethod
    def undecodable(msg: str = "") -> "RecordLookupException":
        """The record backend returned content that is not a DNS message."""
        return RecordLookupException(
            f"error-resolve-records-1002 Record content could not be decoded: {msg}"
        )


class RegistryException(ResolutionException):
    """Raised when the registry cannot produce an answer."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.backend_unavailable, message)

    @staticmethod
    def unavailable(msg: str = "") -> "RegistryException":
        """The registry could not be reached or timed out."""
        return RegistryException(
            f"error-resolve-registry-1000 Registry unavailable: {msg}"
        )

    @staticmethod
    def bad_status(status: int) -> "RegistryException":
        """The registry answered with an unexpected HTTP status."""
        return RegistryException(
            f"error-resolve-registry-1001 Registry returned status {status}"
        )

    @staticmethod
    def rpc_error(message: Any, code: Any) -> "RegistryException":
        """The registry returned a JSON-RPC error object."""
        return RegistryException(
            f"error-resolve-registry-1002 RPC Error: {message} (Code: {code})"
        )


class MissingPreferenceException(ResolutionException):
    """Raised when a search fallback is needed but no search template is set."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.missing_preference, message)

    @staticmethod
    def not_set(cause: str = "") -> "MissingPreferenceException":
        if cause:
            return MissingPreferenceException(
                f"error-resolve-search-1000 Search preference is missing ({cause})"
            )
        return MissingPreferenceException(
            "error-resolve-search-1000 Search preference is missing"
        )
