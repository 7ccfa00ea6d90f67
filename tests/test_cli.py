"""
Tests for the command-line interface.
"""

import pytest

from volradar.cli import main, parse_args


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VOLRADAR_HOST", "VOLRADAR_PORT", "VOLRADAR_CLIENT_ID", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.mode == "simulated"
        assert args.tickers == []
        assert args.timeout is None

    def test_mode_and_tickers(self):
        args = parse_args(["live", "AAPL", "AMD", "--timeout", "10"])
        assert args.mode == "live"
        assert args.tickers == ["AAPL", "AMD"]
        assert args.timeout == 10.0

    def test_tickers_without_mode(self):
        """Test that a first positional that is not a mode is a ticker."""
        args = parse_args(["MSFT", "NVDA"])
        assert args.mode == "simulated"
        assert args.tickers == ["MSFT", "NVDA"]

    def test_mode_only(self):
        args = parse_args(["live"])
        assert args.mode == "live"
        assert args.tickers == []

    def test_usage_error_exit_status(self):
        """Test that usage errors exit with 1, not the connection-failure status."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["MSFT", "--timeout", "soon"])
        assert exc_info.value.code == 1


class TestMain:
    """Tests for main() exit codes."""

    def test_no_tickers_in_file(self, tmp_path):
        """Test that a ticker file with no tickers exits with 1."""
        path = tmp_path / "empty.csv"
        path.write_text("Ticker\n")
        assert main(["simulated", str(path)]) == 1

    def test_bad_config(self, tmp_path):
        """Test that an invalid config exits with 1."""
        path = tmp_path / "radar.yaml"
        path.write_text("nonsense: 1\n")
        assert main(["simulated", "AAPL", "--config", str(path)]) == 1

    def test_simulated_run(self, tmp_path, capsys):
        """Test a full simulated run prints the reports and exits with 0."""
        path = tmp_path / "radar.yaml"
        path.write_text("simulated_latency: 0\ncompletion_timeout: 30\n")

        assert main(["simulated", "AAPL", "MSFT", "--config", str(path)]) == 0

        out = capsys.readouterr().out
        assert "REPORT FOR TICKER: AAPL" in out
        assert "REPORT FOR TICKER: MSFT" in out
        assert "FINAL STATISTICS TABLE" in out

    def test_connection_failure(self, monkeypatch):
        """Test that a provider that cannot connect exits with 2."""
        from volradar import cli
        from volradar.errors import ProviderConnectionError

        def refuse(*args, **kwargs):
            raise ProviderConnectionError("refused")

        monkeypatch.setattr(cli, "run", refuse)
        assert main(["simulated", "AAPL"]) == 2
