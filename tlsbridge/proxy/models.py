from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

Headers = List[Tuple[str, str]]


@dataclass(frozen=True)
class InboundRequest:
    """A plaintext request as received on the listener."""

    method: str
    path_and_query: str
    headers: Headers = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """First value of ``name`` (case-insensitive), or None."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


@dataclass(frozen=True)
class OutboundRequest:
    """The request sent to the upstream, derived from an InboundRequest."""

    method: str
    uri: str
    headers: Headers = field(default_factory=list)
    body: bytes = b""


@dataclass(frozen=True)
class DispatchSuccess:
    """An upstream round trip that completed, whatever the status code."""

    status: int
    headers: Headers
    body: bytes
    elapsed: float


@dataclass(frozen=True)
class TransportFailure:
    """The upstream call failed below HTTP (DNS, TLS, connect, reset, read)."""

    error: str
    elapsed: float


DispatchOutcome = Union[DispatchSuccess, TransportFailure]


@dataclass(frozen=True)
class RequestContext:
    method: str
    path_and_query: str


def elapsed_ms(elapsed: float) -> int:
    return int(elapsed * 1000)
