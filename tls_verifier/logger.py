"""
Standardized logging configuration for TLS Verifier.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from tls_verifier.config import Config


class CustomFormatter(logging.Formatter):
    """Custom formatter with colored output for console."""

    # Color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def __init__(self, use_color: bool = True) -> None:
        self.use_color = use_color
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with optional colors."""
        if self.use_color and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            reset = self.COLORS["RESET"]
            level_name = f"{color}{record.levelname:<8}{reset}"
        else:
            level_name = f"{record.levelname:<8}"

        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        if record.exc_info:
            if not message.endswith("\n"):
                message += "\n"
            message += self.formatException(record.exc_info)

        return f"{timestamp} | {level_name} | {record.name:<24} | {message}"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    EXTRA_FIELDS = ("target", "port", "error_type", "scan_duration", "namespace", "service")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        import json
        from datetime import datetime

        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config: Config) -> None:
    """
    Setup logging configuration.

    Args:
        config: Configuration object
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, config.log_level))

    # Colors only when attached to a terminal
    use_color = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    console_handler.setFormatter(CustomFormatter(use_color=use_color))
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            config.log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"  # 10MB
        )
        file_handler.setLevel(getattr(logging, config.log_level))
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    app_logger = logging.getLogger("tls_verifier")
    app_logger.info(f"Logging initialized - Level: {config.log_level}")

    if config.log_file:
        app_logger.info(f"Log file: {config.log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"tls_verifier.{name}")


# Logging helpers for scan operations
def log_scan_start(logger: logging.Logger, service_count: int) -> None:
    """Log scan cycle start."""
    logger.info(f"Scanning {service_count} services for expiring TLS certificates")


def log_service_skipped(logger: logging.Logger, namespace: str, service: str) -> None:
    """Log a service excluded by the namespace skip pattern."""
    logger.info(
        f"Skipping service {service} in namespace {namespace}",
        extra={"namespace": namespace, "service": service},
    )


def log_probe_success(
    logger: logging.Logger, target: str, port: int, expiration_dates: list
) -> None:
    """Log a successful TLS probe."""
    logger.info(
        f"TLS connection to {target}:{port} succeeded. Certificate expiration dates: "
        f"{expiration_dates}",
        extra={"target": target, "port": port},
    )


def log_probe_failure(
    logger: logging.Logger, target: str, port: int, error: Exception, error_type: str
) -> None:
    """Log a failed TLS probe."""
    logger.error(
        f"TLS probe to {target}:{port} failed: {error}",
        extra={"target": target, "port": port, "error_type": error_type},
    )


def log_scan_complete(
    logger: logging.Logger, duration: float, discovered: int, probes: int, failures: int
) -> None:
    """Log scan cycle completion."""
    logger.info(
        f"Scan completed - Duration: {duration:.2f}s, Probes: {probes}, "
        f"Failed: {failures}, Certificates: {discovered}",
        extra={"scan_duration": duration},
    )


def log_metrics_collection(
    logger: logging.Logger, metric_name: str, value: float, labels: Optional[dict] = None
) -> None:
    """Log metrics collection."""
    extra = {"metric_name": metric_name, "metric_value": value}
    if labels:
        extra["metric_labels"] = labels

    logger.debug(f"Metric collected: {metric_name}={value}", extra=extra)
