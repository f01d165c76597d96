from prometheus_client import REGISTRY

from tlsbridge import metrics


def _count(outcome, status_class):
    return (
        REGISTRY.get_sample_value(
            "tlsbridge_requests_total",
            {"outcome": outcome, "status_class": status_class},
        )
        or 0.0
    )


def test_status_class():
    assert metrics.status_class(200) == "2xx"
    assert metrics.status_class(404) == "4xx"
    assert metrics.status_class(503) == "5xx"


def test_observe_success():
    before = _count("success", "2xx")

    metrics.observe("success", 0.05, 204)

    assert _count("success", "2xx") == before + 1


def test_observe_transport_failure_has_no_status():
    before = _count("transport_failure", "none")

    metrics.observe("transport_failure", 0.5)

    assert _count("transport_failure", "none") == before + 1
    assert (
        REGISTRY.get_sample_value(
            "tlsbridge_request_duration_seconds_count", {"outcome": "transport_failure"}
        )
        >= 1
    )
