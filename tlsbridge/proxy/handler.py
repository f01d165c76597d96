import logging
import time

from fastapi.responses import Response
from opentelemetry import trace

from tlsbridge.proxy import relay
from tlsbridge.proxy.dispatcher import UpstreamDispatcher
from tlsbridge.proxy.models import (
    DispatchSuccess,
    InboundRequest,
    RequestContext,
)
from tlsbridge.proxy.translator import QueryMerge, TranslationError, translate
from tlsbridge.upstream import UpstreamConfig
from tlsbridge.utils.traced_requests import traced_request

logger = logging.getLogger("uvicorn.error")

tracer = trace.get_tracer(__name__)


class ProxyHandler:
    """
    Runs one inbound request through translate, dispatch and relay.

    Holds only shared read-only state: the upstream config and the
    dispatcher. A failure at any step goes straight to the relay's failure
    path; nothing is retried and there is no fallback upstream.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        dispatcher: UpstreamDispatcher,
        query_merge: QueryMerge = QueryMerge.PREFER_INBOUND,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.query_merge = query_merge

    async def handle(self, inbound: InboundRequest) -> Response:
        started = time.perf_counter()
        context = RequestContext(
            method=inbound.method, path_and_query=inbound.path_and_query
        )

        with traced_request(
            tracer,
            operation="proxy_request",
            method=inbound.method,
            path=inbound.path_and_query,
        ) as span:
            try:
                outbound = translate(inbound, self.config, self.query_merge)
            except TranslationError as e:
                span.set_attribute("proxy.error", "translation_failed")
                return relay.relay_translation_error(
                    e, context, time.perf_counter() - started
                )

            span.set_attribute("proxy.target_url", outbound.uri)
            logger.info(
                f"[Proxy] Incoming request: {inbound.method} "
                f"{inbound.path_and_query} -> {outbound.uri}"
            )
            logger.debug(f"[Proxy] Request headers: {inbound.headers}")
            if inbound.body:
                logger.debug(f"[Proxy] Request body size: {len(inbound.body)} bytes")

            outcome = await self.dispatcher.dispatch(outbound)

            if isinstance(outcome, DispatchSuccess):
                span.set_attribute("proxy.status_code", outcome.status)
                logger.debug(f"[Proxy] Response headers: {outcome.headers}")
            else:
                span.set_attribute("proxy.error", "transport_failure")

            return relay.relay(outcome, context)
