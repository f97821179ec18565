"""
Configuration management for TLS Verifier.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from tls_verifier.namespace_filter import compile_skip_pattern

_DURATION_PATTERN = re.compile(r"^(?:\d+(?:\.\d+)?(?:ms|s|m|h|d))+$")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_MULTIPLIERS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(duration: str) -> float:
    """
    Parse a Go-style duration string into seconds.

    Accepts one or more ``<number><unit>`` parts, e.g. ``400ms``, ``30s``,
    ``1h30m`` or ``1.5h``.

    Args:
        duration: Duration string

    Returns:
        Duration in seconds
    """
    if not duration or not _DURATION_PATTERN.match(duration):
        raise ValueError(f"Invalid duration format: {duration!r}")

    return sum(
        float(value) * _DURATION_MULTIPLIERS[unit]
        for value, unit in _DURATION_PART.findall(duration)
    )


class Config(BaseModel):
    """Configuration model for TLS Verifier."""

    # Server settings
    port: int = Field(default=9999, ge=1, le=65535)
    bind_address: str = Field(default="0.0.0.0")  # nosec B104

    # Scan settings
    scan_interval: str = Field(default="2h")
    tls_timeout: str = Field(default="400ms")
    skip_namespace_regex: str = Field(default="")
    workers: int = Field(default=4, ge=1, le=64)

    # Cluster settings
    cluster_domain: str = Field(default="svc.cluster.local")
    kubeconfig: Optional[str] = None

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    # Operation modes
    dry_run: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("scan_interval", "tls_timeout")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Validate duration format (e.g., '400ms', '30s', '2h', '1h30m')."""
        if not v:
            raise ValueError("Duration cannot be empty")

        if parse_duration(v) <= 0:
            raise ValueError(f"Duration must be positive, got '{v}'")
        return v

    @field_validator("skip_namespace_regex")
    @classmethod
    def validate_skip_namespace_regex(cls, v: str) -> str:
        """Validate the namespace skip pattern compiles."""
        compile_skip_pattern(v)
        return v

    @field_validator("cluster_domain")
    @classmethod
    def validate_cluster_domain(cls, v: str) -> str:
        """Strip surrounding dots from the cluster domain."""
        v = v.strip().strip(".")
        if not v:
            raise ValueError("cluster_domain cannot be empty")
        return v

    @property
    def scan_interval_seconds(self) -> float:
        """Get scan interval in seconds."""
        return parse_duration(self.scan_interval)

    @property
    def tls_timeout_seconds(self) -> float:
        """Get per-probe TLS timeout in seconds."""
        return parse_duration(self.tls_timeout)


def load_config(
    config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None
) -> Config:
    """
    Load configuration from file, environment variables and explicit overrides.

    Later sources win: file, then ``TLS_VERIFIER_*`` variables, then overrides
    (command-line flags).

    Args:
        config_path: Path to configuration file
        overrides: Values taking precedence over file and environment

    Returns:
        Config object
    """
    config_data: Dict[str, Any] = {}

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        else:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config_data.update(_get_env_overrides())

    if overrides:
        config_data.update({k: v for k, v in overrides.items() if v is not None})

    return Config(**config_data)


def _get_env_overrides() -> dict:
    """Get configuration overrides from environment variables."""
    env_mapping: Dict[str, tuple[str, Callable[[str], Any]]] = {
        "TLS_VERIFIER_PORT": ("port", int),
        "TLS_VERIFIER_BIND_ADDRESS": ("bind_address", str),
        "TLS_VERIFIER_SCAN_INTERVAL": ("scan_interval", str),
        "TLS_VERIFIER_TLS_TIMEOUT": ("tls_timeout", str),
        "TLS_VERIFIER_SKIP_NAMESPACE_REGEX": ("skip_namespace_regex", str),
        "TLS_VERIFIER_WORKERS": ("workers", int),
        "TLS_VERIFIER_CLUSTER_DOMAIN": ("cluster_domain", str),
        "TLS_VERIFIER_KUBECONFIG": ("kubeconfig", str),
        "TLS_VERIFIER_LOG_LEVEL": ("log_level", str),
        "TLS_VERIFIER_LOG_FILE": ("log_file", str),
        "TLS_VERIFIER_DRY_RUN": ("dry_run", lambda x: x.lower() in ("true", "1", "yes")),
    }

    overrides = {}
    for env_var, (config_key, converter) in env_mapping.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                overrides[config_key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    return overrides


def create_example_config(output_path: str = "config.example.yaml") -> None:
    """Create an example configuration file."""
    example_config = {
        "port": 9999,
        "bind_address": "0.0.0.0",  # nosec B104  # Intentional for production - allows external access
        "scan_interval": "2h",
        "tls_timeout": "400ms",
        "skip_namespace_regex": "^kube-",
        "workers": 4,
        "cluster_domain": "svc.cluster.local",
        "log_level": "INFO",
        "dry_run": False,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
