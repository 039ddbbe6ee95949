"""
Delivery request API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from uuid import UUID

from ujenzipro.controllers.delivery_controller import DeliveryController
from ujenzipro.db.gateway import DataGateway
from ujenzipro.deps.di_container import get_gateway
from ujenzipro.schemas.delivery import (
    DeliveryRequestCreate,
    DeliveryRequestListResponse,
    DeliveryRequestResponse,
    DeliveryResponseRequest,
    DeliveryStatusUpdate,
)

router = APIRouter()


@router.post("", response_model=DeliveryRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_delivery(
    delivery_data: DeliveryRequestCreate,
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestResponse:
    """Create a new delivery request."""
    controller = DeliveryController(gateway)
    return await controller.create_delivery(delivery_data)


@router.get("", response_model=DeliveryRequestListResponse)
async def list_active_deliveries(
    provider_id: UUID = Query(None),
    builder_id: UUID = Query(None),
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestListResponse:
    """List accepted, undelivered deliveries for a provider or a builder, newest first."""
    if provider_id is None and builder_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="provider_id or builder_id is required",
        )
    controller = DeliveryController(gateway)
    return await controller.list_active_deliveries(provider_id=provider_id, builder_id=builder_id)


@router.get("/pending", response_model=DeliveryRequestListResponse)
async def list_pending_requests(
    limit: int = Query(100, ge=1, le=1000),
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestListResponse:
    """List pending requests no provider has answered yet."""
    controller = DeliveryController(gateway)
    return await controller.list_pending_requests(limit=limit)


@router.get("/{delivery_id}", response_model=DeliveryRequestResponse)
async def get_delivery(
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestResponse:
    """Get delivery request by ID."""
    controller = DeliveryController(gateway)
    return await controller.get_delivery(delivery_id)


@router.post("/{delivery_id}/respond", response_model=DeliveryRequestResponse)
async def respond_to_request(
    delivery_id: UUID,
    response_data: DeliveryResponseRequest,
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestResponse:
    """Accept or reject a pending request."""
    controller = DeliveryController(gateway)
    return await controller.respond_to_request(delivery_id, response_data)


@router.patch("/{delivery_id}/status", response_model=DeliveryRequestResponse)
async def update_status(
    delivery_id: UUID,
    status_data: DeliveryStatusUpdate,
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestResponse:
    """Move a delivery to a new status."""
    controller = DeliveryController(gateway)
    return await controller.update_status(delivery_id, status_data.status)


@router.post("/{delivery_id}/cancel", response_model=DeliveryRequestResponse)
async def cancel_delivery(
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
) -> DeliveryRequestResponse:
    """Cancel a delivery."""
    controller = DeliveryController(gateway)
    return await controller.cancel_delivery(delivery_id)
