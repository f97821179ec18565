"""
Prometheus metrics collection for TLS Verifier.
"""

import re
import socket
import sys
import time
from typing import Any, Dict

import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from tls_verifier.logger import get_logger, log_metrics_collection
from tls_verifier.models import CertificateRecord, ScanCycleSummary

EXPIRATION_LABELS = ["namespace", "service", "port", "issuer", "serialnumber"]

# Metrics whose values are always whole numbers
_INTEGER_METRICS = (
    "tls_verifier_discovered_tls_certificates_of_services",
    "tls_verifier_heartbeat_total",
    "tls_verifier_last_scan_timestamp",
    "app_memory_bytes",
    "app_thread_count",
)
_SAMPLE_LINE = re.compile(r"^(\S+(?:\{.*\})?)\s+(\S+)$")


class MetricsCollector:
    """
    Prometheus metrics for discovered service certificates.

    One instance owns its own registry; it is created at startup and handed
    to both the scanner and the HTTP app.
    """

    def __init__(self) -> None:
        self.logger = get_logger("metrics")
        self.registry = CollectorRegistry()

        # Certificate metrics
        self.seconds_to_expiration = Gauge(
            "tls_verifier_seconds_to_expiration_tls_certificate",
            "Seconds to expiration for the TLS certificate of the service",
            EXPIRATION_LABELS,
            registry=self.registry,
        )

        self.discovered_certificates = Gauge(
            "tls_verifier_discovered_tls_certificates_of_services",
            "How many TLS certificates have been discovered across all the services",
            registry=self.registry,
        )

        self.heartbeat = Counter(
            "tls_verifier_heartbeat",
            "Heartbeat counter that keeps increasing if the service is healthy",
            registry=self.registry,
        )

        # Operational metrics
        self.scan_duration_seconds = Histogram(
            "tls_verifier_scan_duration_seconds",
            "Duration of a full scan cycle",
            buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800, float("inf")),
            registry=self.registry,
        )

        self.last_scan_timestamp = Gauge(
            "tls_verifier_last_scan_timestamp",
            "Completion time of the last scan cycle (Unix timestamp)",
            registry=self.registry,
        )

        # Application metrics
        self.app_memory_bytes = Gauge(
            "app_memory_bytes",
            "Application memory usage in bytes",
            ["type"],  # rss, vms
            registry=self.registry,
        )

        self.app_cpu_percent = Gauge(
            "app_cpu_percent", "Application CPU usage percentage", registry=self.registry
        )

        self.app_thread_count = Gauge(
            "app_thread_count", "Number of application threads", registry=self.registry
        )

        self.app_info = Info(
            "app_info",
            "Application information",
            ["hostname", "version", "python_version"],
            registry=self.registry,
        )

        self._last_system_update = 0.0
        self._system_update_interval = 30  # seconds

        self.logger.info("Metrics collector initialized")

    def update_certificate_metrics(
        self, namespace: str, service: str, port: int, record: CertificateRecord
    ) -> None:
        """
        Set the seconds-to-expiration series of one certificate.

        The series is overwritten on every cycle it is observed in and left
        untouched otherwise.
        """
        labels = {
            "namespace": namespace,
            "service": service,
            "port": str(port),
            "issuer": record.issuer_common_name,
            "serialnumber": record.issuer_serial_number,
        }
        self.seconds_to_expiration.labels(**labels).set(record.seconds_to_expiration)
        log_metrics_collection(
            self.logger, "seconds_to_expiration", record.seconds_to_expiration, labels
        )

    def update_scan_metrics(self, summary: ScanCycleSummary) -> None:
        """
        Publish the result of a completed scan cycle.

        Sets the discovered-certificates gauge and advances the heartbeat by
        exactly one.
        """
        self.discovered_certificates.set(summary.discovered_certificates)
        self.heartbeat.inc()
        self.scan_duration_seconds.observe(summary.duration)
        self.last_scan_timestamp.set(int(time.time()))

        log_metrics_collection(
            self.logger,
            "scan_completed",
            summary.duration,
            {
                "discovered_certificates": summary.discovered_certificates,
                "probes_total": summary.probes_total,
                "probes_failed": summary.probes_failed,
            },
        )

    def update_system_metrics(self) -> None:
        """Update system and application metrics."""
        current_time = time.time()

        if current_time - self._last_system_update < self._system_update_interval:
            return

        try:
            process = psutil.Process()

            memory_info = process.memory_info()
            self.app_memory_bytes.labels(type="rss").set(int(memory_info.rss))
            self.app_memory_bytes.labels(type="vms").set(int(memory_info.vms))

            cpu_percent = process.cpu_percent()
            self.app_cpu_percent.set(cpu_percent)

            thread_count = process.num_threads()
            self.app_thread_count.set(int(thread_count))

            from tls_verifier import __version__

            self.app_info.labels(
                hostname=socket.gethostname(),
                version=__version__,
                python_version=f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            ).info({"platform": sys.platform, "process_id": str(process.pid)})

            self._last_system_update = current_time

        except psutil.Error as e:
            self.logger.error(f"Failed to update system metrics: {e}")

    def get_metrics(self) -> str:
        """
        Get Prometheus metrics in text format.

        Returns:
            Metrics in Prometheus text format
        """
        self.update_system_metrics()
        raw_metrics = generate_latest(self.registry).decode("utf-8")
        return self._format_numeric_values(raw_metrics)

    def _format_numeric_values(self, metrics_text: str) -> str:
        """Render whole-number metrics without a trailing '.0' or exponent."""
        formatted_lines = []

        for line in metrics_text.split("\n"):
            match = _SAMPLE_LINE.match(line)
            if line.startswith("#") or not match or not match.group(1).startswith(_INTEGER_METRICS):
                formatted_lines.append(line)
                continue

            metric_name, value = match.groups()
            try:
                float_value = float(value)
            except ValueError:
                formatted_lines.append(line)
                continue

            if float_value.is_integer():
                formatted_lines.append(f"{metric_name} {int(float_value)}")
            else:
                formatted_lines.append(line)

        return "\n".join(formatted_lines)

    def get_content_type(self) -> str:
        """Get content type for metrics endpoint."""
        return CONTENT_TYPE_LATEST

    def get_registry_status(self) -> Dict[str, Any]:
        """Get Prometheus registry status for health checks."""
        return {
            "prometheus_registry": {
                "status": "healthy",
                "last_system_update": self._last_system_update,
            }
        }
