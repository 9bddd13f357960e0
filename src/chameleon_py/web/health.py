"""Health check endpoints for chameleon-py.

Provides /health and /ready endpoints for container orchestration
and load balancer health checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from litestar import Controller, get

if TYPE_CHECKING:
    from litestar import Request


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of an individual component."""

    name: str
    status: HealthStatus
    message: str | None = None
    details: dict[str, int] = field(default_factory=dict)


@dataclass
class HealthResponse:
    """Health check response."""

    status: HealthStatus
    version: str = "0.1.0"
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "version": self.version,
            "timestamp": self.timestamp,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "details": c.details,
                }
                for c in self.components
            ],
        }


class HealthController(Controller):
    """Health check controller.

    Provides liveness and readiness checks. When the game plugin is installed
    the lobby registry's live counts are reported as a component.
    """

    path = ""
    include_in_schema: ClassVar[bool] = True
    tags: ClassVar[list[str]] = ["Health"]

    @get("/health")
    async def health(self, request: Request) -> dict:
        """Liveness check endpoint.

        Returns:
            Health status with component details.
        """
        components = [
            ComponentHealth(
                name="application",
                status=HealthStatus.HEALTHY,
                message="Application is running",
            )
        ]

        lobbies = self._check_lobbies(request)
        if lobbies:
            components.append(lobbies)

        statuses = [c.status for c in components]
        if HealthStatus.UNHEALTHY in statuses:
            overall_status = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall_status = HealthStatus.DEGRADED
        else:
            overall_status = HealthStatus.HEALTHY

        return HealthResponse(status=overall_status, components=components).to_dict()

    @get("/ready")
    async def ready(self, request: Request) -> dict:
        """Readiness check endpoint.

        Returns:
            Readiness status with individual check results.
        """
        checks: dict[str, bool] = {"application": True}
        if hasattr(request.app.state, "registry"):
            checks["lobbies"] = request.app.state.registry is not None

        return {
            "ready": all(checks.values()),
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        }

    def _check_lobbies(self, request: Request) -> ComponentHealth | None:
        """Report lobby and connection counts."""
        registry = getattr(request.app.state, "registry", None)
        if registry is None:
            return None

        details = {"active_lobbies": len(registry)}
        manager = getattr(request.app.state, "connection_manager", None)
        if manager is not None:
            details["connections"] = manager.total_connections
        handler = getattr(request.app.state, "lobby_handler", None)
        if handler is not None:
            details["pending_disconnects"] = handler.guard.pending

        return ComponentHealth(
            name="lobbies",
            status=HealthStatus.HEALTHY,
            message="Lobby registry is running",
            details=details,
        )
