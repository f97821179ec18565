"""
Service scanner for TLS Verifier.

Runs the discovery loop: list services, filter namespaces, probe every port
and publish certificate expirations.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from tls_verifier.config import Config
from tls_verifier.directory import ClusterDirectory
from tls_verifier.extractor import extract
from tls_verifier.logger import (
    get_logger,
    log_probe_failure,
    log_probe_success,
    log_scan_complete,
    log_scan_start,
    log_service_skipped,
)
from tls_verifier.metrics import MetricsCollector
from tls_verifier.models import ProbeResult, ScanCycleSummary, ServiceTarget
from tls_verifier.namespace_filter import NamespaceFilter
from tls_verifier.prober import ProbeError, TLSProber


class ServiceScanner:
    """
    Periodic TLS scanner for every service of the cluster.

    A failing probe only costs the data point for that (service, port) pair.
    A failing directory listing is fatal and propagates out of ``run``.
    """

    def __init__(
        self,
        config: Config,
        directory: ClusterDirectory,
        metrics: MetricsCollector,
        prober: Optional[TLSProber] = None,
    ):
        self.config = config
        self.directory = directory
        self.metrics = metrics
        self.prober = prober or TLSProber()
        self.namespace_filter = NamespaceFilter(config.skip_namespace_regex)
        self.logger = get_logger("scanner")

        self._state = "idle"
        self._cycles_completed = 0
        self._last_summary: Optional[ScanCycleSummary] = None
        self._scan_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None  # created lazily in async context
        self._executor = ThreadPoolExecutor(max_workers=config.workers)

        self.logger.info(
            f"Service scanner initialized - Workers: {config.workers}, "
            f"Timeout: {config.tls_timeout}, Interval: {config.scan_interval}"
        )

    @property
    def scan_task(self) -> Optional[asyncio.Task]:
        return self._scan_task

    async def start_scanning(self) -> None:
        """Start the periodic scan loop as a background task."""
        if self._scan_task and not self._scan_task.done():
            self.logger.warning("Scanner is already running")
            return

        self._scan_task = asyncio.create_task(self.run())
        self.logger.info(f"Started service scanning - Interval: {self.config.scan_interval}")

    async def stop(self) -> None:
        """Stop the scan loop and release the worker pool."""
        if self._stop_event is not None:
            self._stop_event.set()

        if self._scan_task and not self._scan_task.done():
            self._scan_task.cancel()
            try:
                await self._scan_task
            except asyncio.CancelledError:
                pass

        self._executor.shutdown(wait=False)
        self._state = "stopped"
        self.logger.info("Service scanner stopped")

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Scan, sleep for the scan interval, repeat.

        Runs until ``stop`` is called or, when given, ``max_cycles`` cycles
        have completed.
        """
        if self._stop_event is None:
            self._stop_event = asyncio.Event()

        cycles = 0
        while not self._stop_event.is_set():
            await self.scan_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            self._state = "idle"
            self.logger.info(f"Sleeping for {self.config.scan_interval} until the next scan")
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.scan_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

        self._state = "idle"

    async def scan_once(self) -> ScanCycleSummary:
        """
        Perform one full scan cycle.

        Returns:
            Summary of the cycle

        Raises:
            DirectoryError: the service list could not be obtained
        """
        self._state = "scanning"
        summary = ScanCycleSummary(started_at=time.time())

        loop = asyncio.get_running_loop()
        services: List[ServiceTarget] = await loop.run_in_executor(
            self._executor, self.directory.list_services
        )
        summary.services_total = len(services)
        log_scan_start(self.logger, len(services))

        semaphore = asyncio.Semaphore(self.config.workers)
        tasks = []

        for target in services:
            if self.namespace_filter.should_skip(target.namespace):
                log_service_skipped(self.logger, target.namespace, target.name)
                summary.services_skipped += 1
                continue

            for port in target.ports:
                tasks.append(asyncio.create_task(self._probe_target(target, port, semaphore)))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        for result in results:
            summary.probes_total += 1
            if isinstance(result, BaseException):
                summary.probes_failed += 1
                self.logger.error(f"Probe task failed: {result!r}")
                continue
            if not result.success:
                summary.probes_failed += 1
                continue

            for record in result.certificates:
                self.metrics.update_certificate_metrics(
                    result.target.namespace, result.target.name, result.port, record
                )
            summary.discovered_certificates += len(result.certificates)

        summary.duration = time.time() - summary.started_at
        self.metrics.update_scan_metrics(summary)

        self._cycles_completed += 1
        self._last_summary = summary
        log_scan_complete(
            self.logger,
            summary.duration,
            summary.discovered_certificates,
            summary.probes_total,
            summary.probes_failed,
        )
        return summary

    async def _probe_target(
        self, target: ServiceTarget, port: int, semaphore: asyncio.Semaphore
    ) -> ProbeResult:
        """
        Probe one (service, port) pair in the worker pool.

        Args:
            target: Service to probe
            port: Port of the service
            semaphore: Semaphore for concurrency control

        Returns:
            ProbeResult; failures are logged and reported with success=False
        """
        address = target.address(self.config.cluster_domain)

        async with semaphore:
            loop = asyncio.get_running_loop()
            handshake = await loop.run_in_executor(
                self._executor,
                self.prober.probe,
                address,
                port,
                self.config.tls_timeout_seconds,
            )

        if handshake.error is not None:
            return self._failed(target, port, address, handshake.error)

        records = extract(handshake.chain)
        log_probe_success(
            self.logger,
            address,
            port,
            [record.not_after.strftime("%Y-%B-%d") for record in records],
        )
        return ProbeResult(target=target, port=port, success=True, certificates=records)

    def _failed(
        self, target: ServiceTarget, port: int, address: str, error: ProbeError
    ) -> ProbeResult:
        log_probe_failure(self.logger, address, port, error, type(error).__name__)
        return ProbeResult(target=target, port=port, success=False, error=error)

    async def get_health_status(self) -> Dict[str, Any]:
        """Get scanner status."""
        status: Dict[str, Any] = {
            "scan_state": self._state,
            "cycles_completed": self._cycles_completed,
            "worker_pool_size": self.config.workers,
        }
        if self._last_summary is not None:
            status["last_scan"] = {
                "started_at": self._last_summary.started_at,
                "duration": self._last_summary.duration,
                "discovered_certificates": self._last_summary.discovered_certificates,
                "probes_failed": self._last_summary.probes_failed,
            }
        return status
