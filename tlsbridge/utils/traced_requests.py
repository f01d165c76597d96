from typing import Optional, Dict
from contextlib import contextmanager

from opentelemetry.trace import Tracer


@contextmanager
def traced_request(
    tracer: Tracer,
    operation: str,
    method: str,
    path: str,
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span and set the common request attributes."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("http.request.method", method)
        span.set_attribute("url.path", path)
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        yield span
