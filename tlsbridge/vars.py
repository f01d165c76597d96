import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "tlsbridge")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

UPSTREAM_URL = os.environ.get("UPSTREAM_URL", "")
LISTEN_HOST = os.environ.get("LISTEN_HOST", "127.0.0.1")
LISTEN_PORT = int(os.environ.get("LISTEN_PORT", "8080"))

# "fresh" opens one TLS connection per request, "pooled" shares one client
CONNECTION_REUSE = os.environ.get("CONNECTION_REUSE", "fresh").lower()
# "prefer-inbound" or "append"
QUERY_MERGE = os.environ.get("QUERY_MERGE", "prefer-inbound").lower()


def _optional_float(raw: str):
    raw = raw.strip()
    return float(raw) if raw else None


def _optional_int(raw: str):
    raw = raw.strip()
    return int(raw) if raw else None


# No upstream deadline unless configured
UPSTREAM_TIMEOUT = _optional_float(os.getenv("UPSTREAM_TIMEOUT", ""))
METRICS_PORT = _optional_int(os.getenv("METRICS_PORT", ""))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
