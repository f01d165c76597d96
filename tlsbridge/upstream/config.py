"""
Upstream target configuration.

The proxy forwards to exactly one upstream, given as a single absolute URL at
startup. ``parse`` validates it and returns an immutable ``UpstreamConfig``
that every request shares read-only.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit


class Scheme(str, Enum):
    HTTP = "http"
    HTTPS = "https"


class ConfigError(Exception):
    """Raised when the upstream URL cannot be used. Fatal at startup."""

    def __init__(self, raw: str, message: str):
        self.raw = raw
        self.message = message
        super().__init__(message)


class MalformedUpstreamError(ConfigError):
    """The upstream URL is not a syntactically valid absolute URI."""


class SchemeNotAllowedError(ConfigError):
    """The upstream URL does not use https."""


# Whitespace, controls and non-ASCII must be percent-encoded in a URI
_ILLEGAL_URI_CHARS = re.compile(r"[\x00-\x20\x7f-\U0010ffff]")


@dataclass(frozen=True)
class UpstreamConfig:
    scheme: Scheme
    host: str
    port: Optional[int]
    base_path: str
    base_query: Optional[str] = None

    @property
    def authority(self) -> str:
        """Host as it goes into the Host header, with the port only if explicit."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{host}:{self.port}"
        return host

    @property
    def origin(self) -> str:
        return f"{self.scheme.value}://{self.authority}"

    def __str__(self) -> str:
        query = f"?{self.base_query}" if self.base_query is not None else ""
        return f"{self.origin}{self.base_path}{query}"


def parse(raw: str) -> UpstreamConfig:
    """
    Parse and validate the upstream URL.

    Raises:
        MalformedUpstreamError: if ``raw`` is not an absolute URI
        SchemeNotAllowedError: if the scheme is anything but https
    """
    if not raw or _ILLEGAL_URI_CHARS.search(raw):
        raise MalformedUpstreamError(raw, f"Invalid target URL: {raw!r}")

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as e:
        raise MalformedUpstreamError(raw, f"Invalid target URL: {raw!r} ({e})") from e

    if not parts.scheme or not parts.netloc or not parts.hostname:
        raise MalformedUpstreamError(
            raw, f"Invalid target URL: {raw!r} is not an absolute URI"
        )

    if parts.scheme.lower() != Scheme.HTTPS.value:
        raise SchemeNotAllowedError(
            raw, f"Target URL must use HTTPS scheme, got {parts.scheme!r}"
        )

    base_path = parts.path
    if base_path.endswith("/"):
        base_path = base_path[:-1]

    return UpstreamConfig(
        scheme=Scheme.HTTPS,
        host=parts.hostname,
        port=port,
        base_path=base_path,
        base_query=parts.query or None,
    )
