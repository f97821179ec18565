"""
Tests for configuration management.
"""

import os
import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from tls_verifier.config import Config, create_example_config, load_config, parse_duration


class TestParseDuration:
    """Test Go-style duration parsing."""

    @pytest.mark.parametrize(
        "duration,seconds",
        [
            ("400ms", 0.4),
            ("30s", 30),
            ("5m", 300),
            ("2h", 7200),
            ("1d", 86400),
            ("1h30m", 5400),
            ("1.5h", 5400),
            ("1m500ms", 60.5),
        ],
    )
    def test_valid_durations(self, duration, seconds):
        assert parse_duration(duration) == pytest.approx(seconds)

    @pytest.mark.parametrize("duration", ["", "abc", "10", "5 m", "-5s", "1y", "ms"])
    def test_invalid_durations(self, duration):
        with pytest.raises(ValueError):
            parse_duration(duration)


class TestConfig:
    """Test configuration model."""

    def test_default_config(self):
        """Test default configuration values."""
        config = Config()

        assert config.port == 9999
        assert config.bind_address == "0.0.0.0"
        assert config.scan_interval == "2h"
        assert config.tls_timeout == "400ms"
        assert config.skip_namespace_regex == ""
        assert config.workers == 4
        assert config.cluster_domain == "svc.cluster.local"
        assert config.kubeconfig is None
        assert config.log_level == "INFO"
        assert config.dry_run is False

    def test_duration_properties(self):
        config = Config(scan_interval="10m", tls_timeout="250ms")

        assert config.scan_interval_seconds == 600
        assert config.tls_timeout_seconds == pytest.approx(0.25)

    def test_invalid_duration(self):
        with pytest.raises(ValidationError):
            Config(scan_interval="invalid")

        with pytest.raises(ValidationError):
            Config(tls_timeout="400")

    def test_zero_duration_rejected(self):
        with pytest.raises(ValidationError):
            Config(tls_timeout="0s")

    def test_invalid_skip_regex(self):
        """Test an uncompilable skip pattern is a configuration error."""
        with pytest.raises(ValidationError):
            Config(skip_namespace_regex="([unclosed")

    def test_valid_skip_regex(self):
        config = Config(skip_namespace_regex="^kube-")
        assert config.skip_namespace_regex == "^kube-"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Config(log_level="INVALID")

    def test_log_level_normalized(self):
        assert Config(log_level="debug").log_level == "DEBUG"

    def test_port_validation(self):
        with pytest.raises(ValueError):
            Config(port=0)

        with pytest.raises(ValueError):
            Config(port=70000)

    def test_cluster_domain_normalized(self):
        assert Config(cluster_domain=".cluster.example.").cluster_domain == "cluster.example"

        with pytest.raises(ValidationError):
            Config(cluster_domain="..")


class TestLoadConfig:
    """Test configuration loading."""

    def test_load_from_file(self):
        """Test loading configuration from YAML file."""
        config_data = {
            "port": 8080,
            "scan_interval": "30m",
            "skip_namespace_regex": "^kube-",
            "workers": 8,
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            config = load_config(config_path)

            assert config.port == 8080
            assert config.scan_interval == "30m"
            assert config.skip_namespace_regex == "^kube-"
            assert config.workers == 8
        finally:
            os.unlink(config_path)

    def test_load_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_load_without_file(self):
        config = load_config()
        assert config.port == 9999

    def test_environment_variable_override(self, monkeypatch):
        monkeypatch.setenv("TLS_VERIFIER_PORT", "9090")
        monkeypatch.setenv("TLS_VERIFIER_TLS_TIMEOUT", "1s")
        monkeypatch.setenv("TLS_VERIFIER_SKIP_NAMESPACE_REGEX", "^kube-")
        monkeypatch.setenv("TLS_VERIFIER_DRY_RUN", "yes")

        config = load_config()

        assert config.port == 9090
        assert config.tls_timeout == "1s"
        assert config.skip_namespace_regex == "^kube-"
        assert config.dry_run is True

    def test_invalid_environment_value_ignored(self, monkeypatch):
        monkeypatch.setenv("TLS_VERIFIER_WORKERS", "many")

        config = load_config()

        assert config.workers == 4

    def test_overrides_take_precedence(self, monkeypatch):
        """Test explicit overrides beat the environment; None values are ignored."""
        monkeypatch.setenv("TLS_VERIFIER_SCAN_INTERVAL", "1h")

        config = load_config(overrides={"scan_interval": "5m", "port": None})

        assert config.scan_interval == "5m"
        assert config.port == 9999

    def test_invalid_override_is_fatal(self):
        with pytest.raises(ValidationError):
            load_config(overrides={"skip_namespace_regex": "(("})


class TestCreateExampleConfig:
    """Test example configuration creation."""

    def test_create_example_config(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            example_path = Path(temp_dir) / "example.yaml"
            create_example_config(str(example_path))

            assert example_path.exists()

            with open(example_path, "r") as f:
                config_data = yaml.safe_load(f)

            assert "scan_interval" in config_data
            assert "tls_timeout" in config_data

            config = Config(**config_data)
            assert config.port == 9999
