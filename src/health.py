

"""
Health check HTTP server for container orchestration.

Provides /health endpoint for Docker healthchecks and monitoring, reporting
the Discord connection flag and the number of live cooldown windows.
"""
from typing import Any, Callable, Dict, Optional
import time

from aiohttp import web
import structlog

logger = structlog.get_logger()

SERVICE_NAME = "iirose-room-plugins"

StatusProvider = Callable[[], Dict[str, Any]]


class HealthCheckServer:
    """Simple HTTP server for health checks."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        status_provider: Optional[StatusProvider] = None,
    ):
        """
        Initialize health check server.

        Args:
            host: Host to bind to (default: 0.0.0.0)
            port: Port to bind to (default: 8080)
            status_provider: Callable returning extra fields for /health
        """
        self.host = host
        self.port = port
        self.status_provider = status_provider
        self.started_at: Optional[float] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes."""
        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/", self.root_handler)

    async def health_handler(self, request: web.Request) -> web.Response:
        """
        Health check endpoint.

        Returns:
            200 OK with status info, 503 if the status provider failed
        """
        payload: Dict[str, Any] = {
            "status": "healthy",
            "service": SERVICE_NAME,
            "uptime_seconds": self.uptime(),
        }
        if self.status_provider is not None:
            try:
                payload.update(self.status_provider())
            except Exception as e:
                logger.warning("health_status_provider_failed", error=str(e))
                payload["status"] = "degraded"
                return web.json_response(payload, status=503)
        return web.json_response(payload)

    def uptime(self) -> float:
        """Seconds since start(), 0 before the server is started."""
        if self.started_at is None:
            return 0.0
        return round(time.monotonic() - self.started_at, 1)

    async def root_handler(self, request: web.Request) -> web.Response:
        """
        Root endpoint.

        Returns:
            200 OK with service info
        """
        return web.json_response({
            "service": SERVICE_NAME,
            "endpoints": {
                "health": "/health"
            }
        })

    async def start(self) -> None:
        """Start the health check server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(
            self.runner,
            self.host,
            self.port
        )
        await self.site.start()
        self.started_at = time.monotonic()

        logger.info(
            "health_server_started",
            host=self.host,
            port=self.port
        )

    async def stop(self) -> None:
        """Stop the health check server."""
        if self.site is not None:
            await self.site.stop()

        if self.runner is not None:
            await self.runner.cleanup()

        self.started_at = None

        logger.info("health_server_stopped")
