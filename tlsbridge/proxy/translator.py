import re
from enum import Enum

import httpx

from tlsbridge.proxy.models import Headers, InboundRequest, OutboundRequest
from tlsbridge.upstream import UpstreamConfig

# Inbound scheme is always plaintext HTTP
FORWARDED_PROTO = "http"

# Headers the proxy owns on the outbound leg
REPLACED_HEADERS = {"host", "connection", "x-forwarded-proto", "x-forwarded-for"}

# Client IP sources, in order of preference
CLIENT_IP_HEADERS = ("x-real-ip", "x-forwarded-for")

_ILLEGAL_URI_CHARS = re.compile(r"[\x00-\x20\x7f-\U0010ffff]")
# Field values: HTAB, SP, VCHAR and obs-text only
_VALID_HEADER_VALUE = re.compile(r"[\t\x20-\x7e\x80-\xff]*")


class QueryMerge(str, Enum):
    """How the upstream base query combines with the inbound query."""

    PREFER_INBOUND = "prefer-inbound"
    APPEND = "append"


class TranslationError(Exception):
    """Raised when an inbound request cannot be turned into an outbound one."""

    def __init__(self, path_and_query: str, message: str):
        self.path_and_query = path_and_query
        self.message = message
        super().__init__(message)


class InvalidComposedUriError(TranslationError):
    pass


class HeaderValueInvalidError(TranslationError):
    def __init__(self, path_and_query: str, header_name: str):
        self.header_name = header_name
        super().__init__(
            path_and_query, f"Header {header_name!r} has an invalid value"
        )


def compose_uri(
    path_and_query: str,
    config: UpstreamConfig,
    query_merge: QueryMerge = QueryMerge.PREFER_INBOUND,
) -> str:
    """
    Build the upstream URI for an inbound path-and-query.

    The inbound token is used verbatim (its query included) below the
    upstream base path. The upstream's own base query is appended according
    to ``query_merge``: ``APPEND`` always adds it, which yields two ``?``
    fragments when the inbound request also has a query.

    Raises:
        InvalidComposedUriError: if the result is not a valid URI
    """
    base_path = config.base_path
    if base_path.endswith("/"):
        base_path = base_path[:-1]

    request_path = path_and_query
    if request_path.startswith("/"):
        request_path = request_path[1:]

    # With an empty base path the authority's root slash is the separator
    uri = f"{config.origin}{base_path}/{request_path}"

    if config.base_query is not None:
        inbound_has_query = "?" in request_path
        if query_merge == QueryMerge.APPEND or not inbound_has_query:
            uri = f"{uri}?{config.base_query}"

    if _ILLEGAL_URI_CHARS.search(uri):
        raise InvalidComposedUriError(
            path_and_query, f"Composed URI contains illegal characters: {uri!r}"
        )
    try:
        parsed = httpx.URL(uri)
    except httpx.InvalidURL as e:
        raise InvalidComposedUriError(
            path_and_query, f"Failed to parse target URI {uri!r}: {e}"
        ) from e
    if not parsed.host:
        raise InvalidComposedUriError(
            path_and_query, f"Composed URI {uri!r} has no host"
        )
    return uri


def rewrite_headers(inbound: InboundRequest, config: UpstreamConfig) -> Headers:
    """
    Prepare headers for the upstream.

    Drops the inbound host and connection headers, points host at the
    upstream, records the inbound scheme and client IP, and forces
    ``connection: close``. Every other header keeps its name, value and
    position.
    """
    headers: Headers = []
    for name, value in inbound.headers:
        if not _VALID_HEADER_VALUE.fullmatch(value):
            raise HeaderValueInvalidError(inbound.path_and_query, name)
        # x-forwarded-for is re-added below from the client IP sources
        if name.lower() not in REPLACED_HEADERS:
            headers.append((name, value))

    headers.append(("host", config.authority))
    headers.append(("x-forwarded-proto", FORWARDED_PROTO))

    for source in CLIENT_IP_HEADERS:
        client_ip = inbound.header(source)
        if client_ip is not None:
            headers.append(("x-forwarded-for", client_ip))
            break

    headers.append(("connection", "close"))
    return headers


def translate(
    inbound: InboundRequest,
    config: UpstreamConfig,
    query_merge: QueryMerge = QueryMerge.PREFER_INBOUND,
) -> OutboundRequest:
    """Derive the outbound request. Method and body pass through unchanged."""
    return OutboundRequest(
        method=inbound.method,
        uri=compose_uri(inbound.path_and_query, config, query_merge),
        headers=rewrite_headers(inbound, config),
        body=inbound.body,
    )
