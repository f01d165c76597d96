import argparse
import logging
from typing import Optional, Sequence

import uvicorn

from tlsbridge import metrics
from tlsbridge.proxy import ConnectionReuse, QueryMerge, UpstreamDispatcher
from tlsbridge.server import create_app
from tlsbridge.upstream import ConfigError, parse
from tlsbridge.vars import (
    CONNECTION_REUSE,
    LISTEN_HOST,
    LISTEN_PORT,
    LOG_LEVEL,
    METRICS_PORT,
    QUERY_MERGE,
    UPSTREAM_TIMEOUT,
    UPSTREAM_URL,
)

logger = logging.getLogger("uvicorn.error")

LOG_LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tlsbridge",
        description="Forward plaintext HTTP requests to a single HTTPS upstream.",
    )
    parser.add_argument(
        "-p", "--port", type=int, default=LISTEN_PORT, help="HTTP listening port"
    )
    parser.add_argument(
        "-t",
        "--target",
        default=UPSTREAM_URL,
        help="Target HTTPS backend URL (e.g., https://api.example.com)",
    )
    parser.add_argument(
        "--connection-reuse",
        type=ConnectionReuse,
        choices=list(ConnectionReuse),
        default=CONNECTION_REUSE,
        metavar="{fresh,pooled}",
        help="Open a fresh TLS connection per request, or pool them",
    )
    parser.add_argument(
        "--query-merge",
        type=QueryMerge,
        choices=list(QueryMerge),
        default=QUERY_MERGE,
        metavar="{prefer-inbound,append}",
        help="How the target's own query string combines with the request's",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=UPSTREAM_TIMEOUT,
        help="Upstream deadline in seconds (default: none)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=METRICS_PORT,
        help="Expose Prometheus metrics on this port (default: disabled)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=LOG_LEVEL,
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level, logging.INFO))

    if not args.target:
        logger.error(
            "[Startup] No target URL configured; pass --target or set UPSTREAM_URL"
        )
        return 1

    # Validate before anything binds
    try:
        config = parse(args.target)
    except ConfigError as e:
        logger.error(f"[Startup] {e.message}")
        return 1

    dispatcher = UpstreamDispatcher(reuse=args.connection_reuse, timeout=args.timeout)
    app = create_app(config, dispatcher, args.query_merge)

    server_config = uvicorn.Config(
        app,
        host=LISTEN_HOST,
        port=args.port,
        log_level=args.log_level.lower(),
        ws="none",
        server_header=False,
        date_header=False,
    )

    logger.info(f"[Startup] Starting proxy server on http://{LISTEN_HOST}:{args.port}")
    logger.info(f"[Startup] Forwarding requests to {config}")
    logger.info(f"[Startup] TLS implementation: httpx ({dispatcher.describe()})")
    logger.info(f"[Startup] Query merge policy: {args.query_merge.value}")

    if args.metrics_port:
        metrics.expose(args.metrics_port, addr=LISTEN_HOST)
        logger.info(
            f"[Startup] Metrics on http://{LISTEN_HOST}:{args.metrics_port}/metrics"
        )

    uvicorn.Server(server_config).run()
    return 0
