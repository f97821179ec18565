"""
Tests for the command line entry point.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import uvicorn
from click.testing import CliRunner

from main import TLSVerifier, main
from tls_verifier import __version__
from tls_verifier.directory import ClusterDirectory, DirectoryError


class TestCLI:
    """Test command line handling."""

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_frequency_exits_non_zero(self):
        result = CliRunner().invoke(main, ["--frequency", "often"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_invalid_skip_regex_exits_non_zero(self):
        result = CliRunner().invoke(main, ["--skip-namespace-regex", "(("])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_missing_config_file_rejected(self):
        result = CliRunner().invoke(main, ["--config", "/nonexistent/config.yaml"])

        assert result.exit_code != 0

    def test_directory_failure_exits_non_zero(self):
        """Test a failing service listing terminates the process with an error."""
        with patch.object(
            TLSVerifier, "run", new=AsyncMock(side_effect=DirectoryError("forbidden"))
        ):
            result = CliRunner().invoke(main, ["--dry-run"])

        assert result.exit_code == 1
        assert "forbidden" in result.output

    def test_overrides_reach_config(self):
        verifier = TLSVerifier(overrides={"scan_interval": "5m", "port": 8080, "workers": None})

        verifier.initialize()

        assert verifier.config.scan_interval == "5m"
        assert verifier.config.port == 8080
        assert verifier.config.workers == 4
        assert verifier.app is not None


class TestTLSVerifier:
    """Test the application lifecycle."""

    @pytest.fixture
    def served(self, monkeypatch):
        """Replace the HTTP server loop with one that only honours should_exit."""
        events = []

        async def serve(server, sockets=None):
            events.append("started")
            while not server.should_exit:
                await asyncio.sleep(0.01)
            events.append("stopped")

        monkeypatch.setattr(uvicorn.Server, "serve", serve)
        return events

    def _verifier(self, overrides, **list_services):
        verifier = TLSVerifier(overrides=overrides)
        verifier.initialize()
        directory = MagicMock(spec=ClusterDirectory)
        directory.list_services.configure_mock(**list_services)
        verifier.scanner.directory = directory
        return verifier

    @pytest.mark.asyncio
    async def test_directory_failure_stops_server(self, served):
        """Test a fatal scan error takes the server down and propagates."""
        verifier = self._verifier({"port": 18999}, side_effect=DirectoryError("forbidden"))

        with pytest.raises(DirectoryError, match="forbidden"):
            await asyncio.wait_for(verifier.run(), timeout=5)

        assert served == ["started", "stopped"]
        assert verifier.scanner.scan_task.done()
        status = await verifier.scanner.get_health_status()
        assert status["scan_state"] == "stopped"

    @pytest.mark.asyncio
    async def test_dry_run_scans_once_without_server(self, served):
        verifier = self._verifier({"dry_run": True}, return_value=[])

        await asyncio.wait_for(verifier.run(), timeout=5)

        assert served == []
        verifier.scanner.directory.list_services.assert_called_once()
        assert verifier.metrics.registry.get_sample_value("tls_verifier_heartbeat_total") == 1
        status = await verifier.scanner.get_health_status()
        assert status["scan_state"] == "stopped"
