"""
Service-level behaviour not covered through the HTTP API.
"""

import pytest
from uuid import uuid4

from conftest import delivery_payload
from ujenzipro.core.exceptions import BackendUnavailableError, NotFoundError
from ujenzipro.models.communication import SenderType
from ujenzipro.models.status import DeliveryStatus, TrackingStatus
from ujenzipro.schemas.communication import MessageCreate
from ujenzipro.schemas.tracking import TrackingSampleCreate
from ujenzipro.services import delivery_service as delivery_module
from ujenzipro.services.communication_service import CommunicationService
from ujenzipro.tracking.notifications import NotificationCenter, NotificationVariant
from ujenzipro.tracking.reader import TrackingReader
from ujenzipro.utils.geo import haversine_km


@pytest.mark.asyncio
async def test_tracking_number_collision_bumps_timestamp(delivery_service, builder_id, monkeypatch):
    monkeypatch.setattr(delivery_module.time, "time", lambda: 1760000123.5)

    first = await delivery_service.create_delivery(delivery_payload(builder_id))
    second = await delivery_service.create_delivery(delivery_payload(builder_id))

    assert first.tracking_number == "JG00123500"
    assert second.tracking_number == "JG00123501"
    assert (await delivery_service.get_by_tracking_number("jg00123501")).id == second.id


@pytest.mark.asyncio
async def test_apply_tracking_status_only_moves_forward(delivery_service, accepted_delivery):
    picked_up = await delivery_service.apply_tracking_status(accepted_delivery.id, TrackingStatus.PICKED_UP)
    in_transit = await delivery_service.apply_tracking_status(accepted_delivery.id, TrackingStatus.NEARBY)
    unchanged = await delivery_service.apply_tracking_status(accepted_delivery.id, TrackingStatus.ISSUE_REPORTED)

    assert picked_up.status == DeliveryStatus.PICKED_UP
    assert in_transit.status == DeliveryStatus.IN_TRANSIT
    assert unchanged.status == DeliveryStatus.IN_TRANSIT
    assert unchanged.updated_at == in_transit.updated_at


@pytest.mark.asyncio
async def test_update_status_of_missing_delivery(delivery_service):
    with pytest.raises(NotFoundError):
        await delivery_service.update_status(uuid4(), DeliveryStatus.CANCELLED)


@pytest.mark.asyncio
async def test_communication_feed_is_scoped_to_delivery(gateway, create_accepted_delivery, provider_id):
    service = CommunicationService(gateway)
    first = await create_accepted_delivery()
    second = await create_accepted_delivery()
    received = []

    with service.subscribe(first.id, received.append):
        message = MessageCreate(
            sender_type=SenderType.BUILDER,
            sender_id=uuid4(),
            sender_name="Amina",
            content="Please use the back gate",
        )
        await service.send_message(second.id, message)
        await service.send_message(first.id, message)

    await service.send_message(first.id, message)
    assert [m.delivery_request_id for m in received] == [first.id]


@pytest.mark.asyncio
async def test_reader_reports_backend_failure(accepted_delivery, tracking_service, notifier, monkeypatch):
    async def unavailable(*args, **kwargs):
        raise BackendUnavailableError("Failed to read from delivery_tracking")

    monkeypatch.setattr(tracking_service.gateway, "select", unavailable)
    reader = TrackingReader(tracking_service, notifier)

    assert await reader.list_samples(accepted_delivery.id) == []
    assert notifier.errors[-1].description == "Failed to fetch tracking data"
    assert reader.latest([]) is None


@pytest.mark.asyncio
async def test_history_limit_is_clamped(tracking_service, accepted_delivery, provider_id):
    for i in range(3):
        await tracking_service.record_sample(
            accepted_delivery.id,
            TrackingSampleCreate(provider_id=provider_id, latitude=-1.29, longitude=36.82 + i / 1000, status="en_route"),
        )

    assert len(await tracking_service.list_samples(accepted_delivery.id, limit=0)) == 1
    assert len(await tracking_service.list_samples(accepted_delivery.id, limit=10_000)) == 3


def test_notification_history_is_bounded():
    center = NotificationCenter(history_size=2)
    center.notify("Tracking Started", "Sharing location")
    center.error("Location Error", "Location permission denied")
    latest = center.notify("Delivery Update", "Status: Nearby")

    assert [n.title for n in center.items] == ["Location Error", "Delivery Update"]
    assert center.errors[0].variant is NotificationVariant.DESTRUCTIVE

    center.dismiss(latest)
    center.dismiss(latest)
    assert len(center.items) == 1
    center.clear()
    assert center.items == []


def test_haversine_known_distance():
    # Nairobi CBD to Jomo Kenyatta International Airport
    assert haversine_km(-1.2921, 36.8219, -1.3192, 36.9278) == pytest.approx(12.15, abs=0.2)
    assert haversine_km(0, 0, 0, 0) == 0
