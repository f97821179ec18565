"""
Data model for scan cycles.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from tls_verifier.prober import ProbeError


@dataclass(frozen=True)
class ServiceTarget:
    """A service reported by the cluster directory."""

    name: str
    namespace: str
    ports: Tuple[int, ...] = ()

    def address(self, cluster_domain: str) -> str:
        """DNS name the service is reachable at inside the cluster."""
        return f"{self.name}.{self.namespace}.{cluster_domain}"


@dataclass(frozen=True)
class CertificateRecord:
    """Expiration data for one certificate of a peer chain."""

    issuer_common_name: str
    issuer_serial_number: str
    not_after: datetime
    seconds_to_expiration: float


@dataclass
class ProbeResult:
    """Outcome of probing one (service, port) pair."""

    target: ServiceTarget
    port: int
    success: bool
    certificates: List[CertificateRecord] = field(default_factory=list)
    error: Optional[ProbeError] = None


@dataclass
class ScanCycleSummary:
    """Aggregate of one scan cycle."""

    started_at: float
    discovered_certificates: int = 0
    services_total: int = 0
    services_skipped: int = 0
    probes_total: int = 0
    probes_failed: int = 0
    duration: float = 0.0
