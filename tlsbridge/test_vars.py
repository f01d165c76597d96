import importlib


def test_defaults(monkeypatch):
    for name in ("LISTEN_PORT", "CONNECTION_REUSE", "QUERY_MERGE", "UPSTREAM_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    import tlsbridge.vars as vars_module

    importlib.reload(vars_module)

    assert vars_module.LISTEN_HOST == "127.0.0.1"
    assert vars_module.LISTEN_PORT == 8080
    assert vars_module.CONNECTION_REUSE == "fresh"
    assert vars_module.QUERY_MERGE == "prefer-inbound"
    assert vars_module.UPSTREAM_TIMEOUT is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LISTEN_PORT", "9000")
    monkeypatch.setenv("CONNECTION_REUSE", "POOLED")
    monkeypatch.setenv("UPSTREAM_TIMEOUT", "30")
    monkeypatch.setenv("METRICS_PORT", "9100")
    import tlsbridge.vars as vars_module

    importlib.reload(vars_module)

    assert vars_module.LISTEN_PORT == 9000
    assert vars_module.CONNECTION_REUSE == "pooled"
    assert vars_module.UPSTREAM_TIMEOUT == 30.0
    assert vars_module.METRICS_PORT == 9100

    monkeypatch.undo()
    importlib.reload(vars_module)
