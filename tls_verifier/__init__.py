"""
TLS Verifier

Periodically discovers the services of a Kubernetes cluster, performs a TLS
handshake against each exposed port and exports certificate expirations as
Prometheus metrics.
"""

__version__ = "1.0.0"
__author__ = "TLS Verifier Team"
__description__ = "Expiration monitoring for the TLS certificates of cluster services"

from tls_verifier.config import Config
from tls_verifier.metrics import MetricsCollector
from tls_verifier.scanner import ServiceScanner

__all__ = [
    "Config",
    "MetricsCollector",
    "ServiceScanner",
]
