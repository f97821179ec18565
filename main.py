#!/usr/bin/env python3
"""
TLS Verifier - Main Application Entry Point
"""

import asyncio
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import click
import uvicorn
from fastapi import FastAPI
from pydantic import ValidationError

from tls_verifier import __version__
from tls_verifier.api import create_app
from tls_verifier.config import Config, load_config
from tls_verifier.directory import ClusterDirectory, DirectoryError
from tls_verifier.logger import setup_logging
from tls_verifier.metrics import MetricsCollector
from tls_verifier.scanner import ServiceScanner


class TLSVerifier:
    """Main application class for TLS Verifier."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.config: Optional[Config] = None
        self.scanner: Optional[ServiceScanner] = None
        self.metrics: Optional[MetricsCollector] = None
        self.app: Optional[FastAPI] = None
        self.config_path = config_path
        self.overrides = overrides or {}
        self.logger = logging.getLogger(__name__)

    def initialize(self) -> None:
        """Initialize all application components."""
        self.config = load_config(self.config_path, self.overrides)

        setup_logging(self.config)
        self.logger.info("Initializing TLS Verifier")

        self.metrics = MetricsCollector()
        directory = ClusterDirectory(kubeconfig=self.config.kubeconfig)
        self.scanner = ServiceScanner(config=self.config, directory=directory, metrics=self.metrics)
        self.app = create_app(scanner=self.scanner, metrics=self.metrics, config=self.config)

        self.logger.info("TLS Verifier initialized successfully")

    async def run(self) -> None:
        """Serve metrics and health checks while the scan loop runs."""
        if not self.app:
            self.initialize()

        assert self.config is not None, "Config should be initialized"
        assert self.scanner is not None, "Scanner should be initialized"

        if self.config.dry_run:
            self.logger.info("Running in dry-run mode - single scan, no server")
            try:
                summary = await self.scanner.scan_once()
                self.logger.info(f"Dry-run scan completed: {asdict(summary)}")
            finally:
                await self.shutdown()
            return

        server = uvicorn.Server(
            uvicorn.Config(
                app=self.app,
                host=self.config.bind_address,
                port=self.config.port,
                log_level=self.config.log_level.lower(),
                access_log=False,
            )
        )
        self.logger.info(
            f"Listening for metrics and healthchecks on "
            f"{self.config.bind_address}:{self.config.port}"
        )

        await self.scanner.start_scanning()
        scan_task = self.scanner.scan_task
        assert scan_task is not None
        serve_task = asyncio.create_task(server.serve())

        try:
            done, _ = await asyncio.wait(
                {serve_task, scan_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if scan_task in done and not scan_task.cancelled() and scan_task.exception():
                # Scanning cannot continue: take the server down with it
                server.should_exit = True
                await serve_task
                raise scan_task.exception()  # type: ignore[misc]
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop the scanner."""
        self.logger.info("Starting shutdown")

        if self.scanner:
            await self.scanner.stop()

        self.logger.info("Shutdown completed")


@click.command()
@click.option(
    "--config",
    "-f",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--frequency", help="How often to scan for new TLS certificates (e.g. 2h)")
@click.option("--timeout", help="Connection timeout to TLS endpoints (e.g. 400ms)")
@click.option("--skip-namespace-regex", help="Namespaces matching this regex get skipped")
@click.option("--port", type=int, help="TCP port to serve metrics and health checks on")
@click.option("--workers", type=int, help="Number of concurrent probes")
@click.option("--kubeconfig", help="Use this kubeconfig instead of the in-cluster config")
@click.option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
@click.option("--dry-run", is_flag=True, default=None, help="Run a single scan and exit")
@click.option("--version", "-v", is_flag=True, help="Show version information")
def main(
    config: Optional[Path],
    frequency: Optional[str],
    timeout: Optional[str],
    skip_namespace_regex: Optional[str],
    port: Optional[int],
    workers: Optional[int],
    kubeconfig: Optional[str],
    log_level: Optional[str],
    dry_run: Optional[bool],
    version: bool,
) -> None:
    """TLS Verifier - Export expiration of the TLS certificates served by cluster services."""
    if version:
        print(f"TLS Verifier v{__version__}")
        return

    overrides = {
        "scan_interval": frequency,
        "tls_timeout": timeout,
        "skip_namespace_regex": skip_namespace_regex,
        "port": port,
        "workers": workers,
        "kubeconfig": kubeconfig,
        "log_level": log_level,
        "dry_run": dry_run,
    }

    try:
        verifier = TLSVerifier(str(config) if config else None, overrides=overrides)
        verifier.initialize()
    except (ValidationError, FileNotFoundError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(verifier.run())
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        sys.exit(0)
    except DirectoryError as e:
        print(f"Could not list cluster services: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Application failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
