"""
Health service.
Provides health check functionality.
"""

import time
from typing import Optional

from ujenzipro.core.integrations.observability import exception_counts
from ujenzipro.db.gateway import SqlAlchemyGateway
from ujenzipro.schemas.health import HealthResponse


class HealthService:
    """Service for health check operations."""

    def __init__(self, gateway: Optional[SqlAlchemyGateway] = None):
        self.gateway = gateway
        self.start_time = time.time()

    async def get_health(self) -> HealthResponse:
        """
        Get system health status.

        Returns:
            HealthResponse with status, uptime, and checks
        """
        uptime_seconds = int(time.time() - self.start_time)
        uptime_str = f"PT{uptime_seconds}S"  # ISO 8601 duration format

        checks = {}
        if self.gateway is None:
            checks["database"] = "error: not configured"
        else:
            checks["database"] = "ok" if await self.gateway.check_connection() else "error"
            checks["realtime_channels"] = self.gateway.change_feed.open_count

        counts = exception_counts()
        if counts:
            checks["recorded_exceptions"] = counts

        status = "ok" if checks["database"] == "ok" else "degraded"

        return HealthResponse(
            status=status,
            uptime=uptime_str,
            checks=checks,
        )
