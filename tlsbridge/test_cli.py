import logging
from unittest.mock import patch

import pytest

from tlsbridge.cli import build_parser, main
from tlsbridge.proxy import ConnectionReuse, QueryMerge


@pytest.fixture
def mock_uvicorn():
    with patch("tlsbridge.cli.uvicorn") as mock:
        yield mock


class TestMain:
    def test_non_https_target_exits_without_listener(self, mock_uvicorn, caplog):
        caplog.set_level(logging.INFO, logger="uvicorn.error")

        exit_code = main(["--target", "http://api.example.com"])

        assert exit_code != 0
        mock_uvicorn.Config.assert_not_called()
        mock_uvicorn.Server.assert_not_called()
        assert any("HTTPS" in r.getMessage() for r in caplog.records)

    def test_malformed_target_exits_without_listener(self, mock_uvicorn):
        exit_code = main(["--target", "not a url"])

        assert exit_code != 0
        mock_uvicorn.Server.assert_not_called()

    def test_missing_target_exits_without_listener(self, mock_uvicorn, monkeypatch):
        monkeypatch.setattr("tlsbridge.cli.UPSTREAM_URL", "")

        exit_code = main([])

        assert exit_code != 0
        mock_uvicorn.Server.assert_not_called()

    def test_valid_target_starts_server(self, mock_uvicorn, caplog):
        caplog.set_level(logging.INFO, logger="uvicorn.error")

        exit_code = main(["-t", "https://api.example.com/v1", "-p", "9090"])

        assert exit_code == 0
        kwargs = mock_uvicorn.Config.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9090
        assert kwargs["server_header"] is False
        assert kwargs["date_header"] is False
        mock_uvicorn.Server.return_value.run.assert_called_once()

        messages = " ".join(r.getMessage() for r in caplog.records)
        assert "http://127.0.0.1:9090" in messages
        assert "https://api.example.com/v1" in messages
        assert "no connection pooling" in messages

    def test_pooled_policy_in_banner(self, mock_uvicorn, caplog):
        caplog.set_level(logging.INFO, logger="uvicorn.error")

        main(["-t", "https://api.example.com", "--connection-reuse", "pooled"])

        messages = " ".join(r.getMessage() for r in caplog.records)
        assert "connection pooling enabled" in messages

    def test_metrics_exposed_when_port_given(self, mock_uvicorn):
        with patch("tlsbridge.cli.metrics.expose") as expose:
            main(["-t", "https://api.example.com", "--metrics-port", "9100"])

        expose.assert_called_once_with(9100, addr="127.0.0.1")


class TestParser:
    def test_defaults(self, monkeypatch):
        monkeypatch.setattr("tlsbridge.cli.LISTEN_PORT", 8080)
        monkeypatch.setattr("tlsbridge.cli.CONNECTION_REUSE", "fresh")
        monkeypatch.setattr("tlsbridge.cli.QUERY_MERGE", "prefer-inbound")
        monkeypatch.setattr("tlsbridge.cli.UPSTREAM_TIMEOUT", None)

        args = build_parser().parse_args(["-t", "https://api.example.com"])

        assert args.port == 8080
        assert args.connection_reuse == ConnectionReuse.FRESH
        assert args.query_merge == QueryMerge.PREFER_INBOUND
        assert args.timeout is None

    def test_overrides(self):
        args = build_parser().parse_args(
            [
                "-t",
                "https://api.example.com",
                "--connection-reuse",
                "pooled",
                "--query-merge",
                "append",
                "--timeout",
                "2.5",
                "--log-level",
                "debug",
            ]
        )

        assert args.connection_reuse == ConnectionReuse.POOLED
        assert args.query_merge == QueryMerge.APPEND
        assert args.timeout == 2.5
        assert args.log_level == "DEBUG"

    def test_unknown_policy_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["-t", "https://api.example.com", "--connection-reuse", "sometimes"]
            )
