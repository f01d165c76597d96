from prometheus_client import Counter, Histogram, Info, start_http_server

from tlsbridge.vars import SERVICE_NAME

app_info = Info("tlsbridge_app", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

REQUESTS = Counter(
    "tlsbridge_requests_total",
    "Proxied requests by outcome and upstream status class",
    ["outcome", "status_class"],
)

REQUEST_DURATION = Histogram(
    "tlsbridge_request_duration_seconds",
    "Time from receiving a request to relaying its outcome",
    ["outcome"],
)


def status_class(status: int) -> str:
    return f"{status // 100}xx"


def observe(outcome: str, elapsed: float, status: int = 0) -> None:
    REQUESTS.labels(
        outcome=outcome, status_class=status_class(status) if status else "none"
    ).inc()
    REQUEST_DURATION.labels(outcome=outcome).observe(elapsed)


def expose(port: int, addr: str = "127.0.0.1") -> None:
    """Serve /metrics on its own port; the proxy listener forwards every path."""
    start_http_server(port, addr=addr)
