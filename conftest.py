# Ensure tests import the package from this checkout first, whether or not
# it has been installed.
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

import pytest  # noqa: E402

from tlsbridge.proxy import InboundRequest  # noqa: E402
from tlsbridge.upstream import parse  # noqa: E402


@pytest.fixture
def upstream_config():
    """The upstream used throughout the proxy tests."""
    return parse("https://api.example.com/v1")


@pytest.fixture
def make_inbound():
    def _make(method="GET", path="/", headers=None, body=b""):
        return InboundRequest(
            method=method, path_and_query=path, headers=list(headers or []), body=body
        )

    return _make
