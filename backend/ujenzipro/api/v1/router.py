"""
API v1 router that aggregates all endpoint routers.
"""

from fastapi import APIRouter

from ujenzipro.api.v1.endpoints import (
    health,
    deliveries,
    tracking,
    communications,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(deliveries.router, prefix="/deliveries", tags=["deliveries"])
api_router.include_router(tracking.router, prefix="/deliveries", tags=["tracking"])
api_router.include_router(communications.router, prefix="/deliveries", tags=["communications"])
