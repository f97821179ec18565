"""
FastAPI application for TLS Verifier.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from tls_verifier import __version__
from tls_verifier.config import Config
from tls_verifier.logger import get_logger
from tls_verifier.metrics import MetricsCollector
from tls_verifier.scanner import ServiceScanner


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan handler that suppresses CancelledError during shutdown."""
    try:
        yield
    except asyncio.CancelledError:
        pass


def create_app(
    scanner: ServiceScanner,
    metrics: MetricsCollector,
    config: Config,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        scanner: Service scanner instance
        metrics: Metrics collector instance
        config: Configuration instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="TLS Verifier",
        description="Expiration monitoring for the TLS certificates of cluster services",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    logger = get_logger("api")
    started_at = time.time()

    @app.get("/metrics", response_class=PlainTextResponse)
    async def get_metrics() -> PlainTextResponse:
        try:
            metrics_data: str = metrics.get_metrics()
            return PlainTextResponse(content=metrics_data, media_type=metrics.get_content_type())
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate metrics") from e

    async def health() -> JSONResponse:
        # Liveness only: never reflects scan results
        content: Dict[str, Any] = {
            "status": "healthy",
            "version": __version__,
            "uptime": round(time.time() - started_at, 3),
        }
        try:
            content.update(await scanner.get_health_status())
            content.update(metrics.get_registry_status())
        except Exception as e:
            logger.warning(f"Could not read component status: {e}")
        return JSONResponse(content=content)

    app.add_api_route("/livez", health, methods=["GET"], response_class=JSONResponse)
    app.add_api_route("/healthz", health, methods=["GET"], response_class=JSONResponse)

    @app.get("/", response_class=JSONResponse)
    async def root() -> JSONResponse:
        return JSONResponse(
            content={
                "name": "TLS Verifier",
                "version": __version__,
                "scan_interval": config.scan_interval,
                "tls_timeout": config.tls_timeout,
                "endpoints": ["/metrics", "/livez", "/healthz"],
            }
        )

    return app
