"""
Maps dispatch outcomes to the response the original caller receives.

This is the only place that decides what a failure looks like to the
caller: translation errors and transport failures both become the same
generic 404 with no upstream detail in it.
"""

import logging

from fastapi.responses import Response

from tlsbridge import metrics
from tlsbridge.proxy.models import (
    DispatchOutcome,
    DispatchSuccess,
    Headers,
    RequestContext,
    elapsed_ms,
)
from tlsbridge.proxy.translator import TranslationError

logger = logging.getLogger("uvicorn.error")

# Framing belongs to the inbound server, not the upstream connection
HOP_BY_HOP_RESPONSE_HEADERS = {"connection", "keep-alive", "transfer-encoding"}

FAILURE_STATUS = 404
FAILURE_BODY = b"Not Found"


def failure_response() -> Response:
    return Response(
        content=FAILURE_BODY, status_code=FAILURE_STATUS, media_type="text/plain"
    )


def _has_body(method: str, status: int) -> bool:
    # A HEAD answer describes the GET body it omits
    return method != "HEAD" and status >= 200 and status not in (204, 304)


def _relayed_headers(headers: Headers, method: str, status: int, body: bytes):
    raw = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in headers
        if name.lower() not in HOP_BY_HOP_RESPONSE_HEADERS
    ]
    if _has_body(method, status) and not any(
        name.lower() == b"content-length" for name, _ in raw
    ):
        raw.append((b"content-length", str(len(body)).encode("latin-1")))
    return raw


def relay_success(outcome: DispatchSuccess, context: RequestContext) -> Response:
    status = outcome.status
    message = (
        f"{context.method} {context.path_and_query} -> {status} "
        f"({elapsed_ms(outcome.elapsed)}ms)"
    )
    if status < 400:
        logger.info(f"[Proxy] Request successful: {message}")
        metrics.observe("success", outcome.elapsed, status)
    else:
        logger.error(f"[Proxy] Request failed: {message}")
        metrics.observe("upstream_error", outcome.elapsed, status)

    response = Response(content=outcome.body, status_code=status)
    response.raw_headers = _relayed_headers(
        outcome.headers, context.method, status, outcome.body
    )
    return response


def relay(outcome: DispatchOutcome, context: RequestContext) -> Response:
    if isinstance(outcome, DispatchSuccess):
        return relay_success(outcome, context)

    logger.error(
        f"[Proxy] Request error: {context.method} {context.path_and_query} -> "
        f"{outcome.error} ({elapsed_ms(outcome.elapsed)}ms)"
    )
    metrics.observe("transport_failure", outcome.elapsed)
    return failure_response()


def relay_translation_error(
    error: TranslationError, context: RequestContext, elapsed: float
) -> Response:
    logger.error(
        f"[Proxy] Failed to translate request: {context.method} "
        f"{error.path_and_query}: {error.message} ({elapsed_ms(elapsed)}ms)"
    )
    metrics.observe("translation_error", elapsed)
    return failure_response()
