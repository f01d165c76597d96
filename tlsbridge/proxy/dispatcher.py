import logging
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional

import httpx

from tlsbridge.proxy.models import (
    DispatchOutcome,
    DispatchSuccess,
    Headers,
    OutboundRequest,
    TransportFailure,
)
from tlsbridge.utils.exception_logging import format_exception_message

logger = logging.getLogger("uvicorn.error")

# The body is materialized before dispatch; httpx frames it again
CLIENT_FRAMED_HEADERS = {"transfer-encoding"}


class ConnectionReuse(str, Enum):
    """Whether upstream TLS connections survive between requests."""

    FRESH = "fresh"
    POOLED = "pooled"


class UpstreamDispatcher:
    """
    Sends outbound requests to the upstream over TLS.

    With ``ConnectionReuse.FRESH`` every request gets its own client with
    keep-alive disabled, so each round trip opens and tears down one TLS
    connection. With ``ConnectionReuse.POOLED`` a single client is shared by
    all requests between ``start()`` and ``aclose()`` and httpx owns the pool.

    Certificates are checked against the public trust store. Redirects are
    never followed and there is no deadline unless ``timeout`` is given.
    """

    def __init__(
        self,
        reuse: ConnectionReuse = ConnectionReuse.FRESH,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.reuse = reuse
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def describe(self) -> str:
        if self.reuse == ConnectionReuse.POOLED:
            policy = "connection pooling enabled"
        else:
            policy = "no connection pooling, fresh TLS connection per request"
        deadline = f"{self.timeout}s" if self.timeout is not None else "none"
        return f"{policy}; upstream timeout: {deadline}"

    def _build_client(self) -> httpx.AsyncClient:
        if self.reuse == ConnectionReuse.FRESH:
            limits = httpx.Limits(max_keepalive_connections=0, keepalive_expiry=0)
        else:
            limits = httpx.Limits()
        return httpx.AsyncClient(
            verify=True,
            http1=True,
            http2=False,
            follow_redirects=False,
            trust_env=False,
            timeout=httpx.Timeout(self.timeout),
            limits=limits,
            transport=self._transport,
        )

    async def start(self) -> None:
        if self.reuse == ConnectionReuse.POOLED and self._client is None:
            self._client = self._build_client()
            logger.info("[Dispatcher] Shared upstream client opened")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("[Dispatcher] Shared upstream client closed")

    @asynccontextmanager
    async def _client_for_request(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.reuse == ConnectionReuse.POOLED:
            if self._client is None:
                await self.start()
            yield self._client
        else:
            async with self._build_client() as client:
                yield client

    async def dispatch(self, req: OutboundRequest) -> DispatchOutcome:
        """
        Execute one upstream round trip. Never retries.

        Every HTTP status is a success here; only failures below HTTP come
        back as ``TransportFailure``.
        """
        started = time.perf_counter()
        # As bytes; httpx encodes str header values as ASCII and would reject obs-text
        headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in req.headers
            if name.lower() not in CLIENT_FRAMED_HEADERS
        ]
        try:
            async with self._client_for_request() as client:
                # Built outside the client so its default headers are not merged in
                upstream_request = httpx.Request(
                    req.method, req.uri, headers=headers, content=req.body
                )
                response = await client.send(upstream_request, stream=True)
                try:
                    # Raw bytes, so content-encoding still describes the body
                    body = b"".join([chunk async for chunk in response.aiter_raw()])
                finally:
                    await response.aclose()
        except httpx.RequestError as e:
            return TransportFailure(
                error=f"{type(e).__name__}: {format_exception_message(e)}",
                elapsed=time.perf_counter() - started,
            )

        return DispatchSuccess(
            status=response.status_code,
            headers=_raw_headers(response),
            body=body,
            elapsed=time.perf_counter() - started,
        )


def _raw_headers(response: httpx.Response) -> Headers:
    return [
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in response.headers.raw
    ]
