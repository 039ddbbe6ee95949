"""
Delivery, tracking and communication API endpoints.
"""

import pytest
from uuid import UUID, uuid4

from conftest import NAIROBI, WebSocketSession
from ujenzipro.controllers.communication_controller import CommunicationController
from ujenzipro.controllers.tracking_controller import TrackingController
from ujenzipro.core.exceptions import BackendUnavailableError, NotFoundError
from ujenzipro.core.integrations.observability import exception_counts
from ujenzipro.main import app
from ujenzipro.schemas.tracking import TrackingSampleCreate
from ujenzipro.services.delivery_service import DeliveryService, generate_tracking_number


def delivery_body(builder_id, **overrides):
    body = {
        "builder_id": str(builder_id),
        "pickup_address": "Bamburi Cement Depot, Mombasa Road",
        "delivery_address": "Kilimani site, Argwings Kodhek Road",
        "delivery_latitude": -1.2900,
        "delivery_longitude": 36.7850,
        "material_type": "cement",
        "quantity": 40,
    }
    body.update(overrides)
    return body


def sample_body(provider_id, **overrides):
    body = {
        "provider_id": str(provider_id),
        "latitude": NAIROBI[0],
        "longitude": NAIROBI[1],
        "heading": 90,
        "speed": 8.2,
        "accuracy": 5,
        "status": "en_route",
    }
    body.update(overrides)
    return body


async def create_and_accept(client, builder_id, provider_id):
    created = await client.post("/api/v1/deliveries", json=delivery_body(builder_id))
    assert created.status_code == 201
    delivery_id = created.json()["id"]
    accepted = await client.post(
        f"/api/v1/deliveries/{delivery_id}/respond",
        json={"provider_id": str(provider_id), "response": "accepted", "notes": "On my way"},
    )
    assert accepted.status_code == 200
    return accepted.json()


def test_tracking_number_format():
    assert generate_tracking_number(1760000123456) == "JG00123456"


@pytest.mark.asyncio
async def test_create_delivery_starts_pending(test_client, builder_id):
    response = await test_client.post("/api/v1/deliveries", json=delivery_body(builder_id))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["tracking_number"].startswith("JG")
    assert len(data["tracking_number"]) == 10
    assert data["provider_id"] is None

    pending = await test_client.get("/api/v1/deliveries/pending")
    assert [item["id"] for item in pending.json()["items"]] == [data["id"]]


@pytest.mark.asyncio
async def test_create_delivery_validates_coordinates(test_client, builder_id):
    response = await test_client.post(
        "/api/v1/deliveries",
        json=delivery_body(builder_id, delivery_longitude=None),
    )

    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Validation error"


@pytest.mark.asyncio
async def test_respond_and_list_active(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)

    assert delivery["status"] == "accepted"
    assert delivery["provider_response"] == "accepted"
    assert delivery["provider_id"] == str(provider_id)
    assert delivery["response_date"] is not None

    by_provider = await test_client.get("/api/v1/deliveries", params={"provider_id": str(provider_id)})
    by_builder = await test_client.get("/api/v1/deliveries", params={"builder_id": str(builder_id)})
    assert by_provider.json()["total"] == 1
    assert by_builder.json()["items"][0]["id"] == delivery["id"]

    pending = await test_client.get("/api/v1/deliveries/pending")
    assert pending.json()["total"] == 0


@pytest.mark.asyncio
async def test_list_active_requires_a_party(test_client):
    response = await test_client.get("/api/v1/deliveries")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_rejected_request_is_terminal(test_client, builder_id, provider_id):
    created = await test_client.post("/api/v1/deliveries", json=delivery_body(builder_id))
    delivery_id = created.json()["id"]

    rejected = await test_client.post(
        f"/api/v1/deliveries/{delivery_id}/respond",
        json={"provider_id": str(provider_id), "response": "rejected"},
    )
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["provider_id"] is None

    response = await test_client.patch(f"/api/v1/deliveries/{delivery_id}/status", json={"status": "accepted"})
    assert response.status_code == 409
    assert response.json()["error"]["details"] == {"current": "rejected", "target": "accepted"}


@pytest.mark.asyncio
async def test_status_moves_forward_only(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    url = f"/api/v1/deliveries/{delivery['id']}/status"

    assert (await test_client.patch(url, json={"status": "in_transit"})).status_code == 200
    assert (await test_client.patch(url, json={"status": "in_transit"})).status_code == 200
    assert (await test_client.patch(url, json={"status": "picked_up"})).status_code == 409

    delivered = await test_client.patch(url, json={"status": "delivered"})
    assert delivered.json()["status"] == "delivered"
    assert delivered.json()["actual_delivery_time"] is not None

    active = await test_client.get("/api/v1/deliveries", params={"provider_id": str(provider_id)})
    assert active.json()["total"] == 0


@pytest.mark.asyncio
async def test_cancel_delivery(test_client, builder_id):
    created = await test_client.post("/api/v1/deliveries", json=delivery_body(builder_id))
    delivery_id = created.json()["id"]

    response = await test_client.post(f"/api/v1/deliveries/{delivery_id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_unknown_delivery_is_404(test_client):
    response = await test_client.get(f"/api/v1/deliveries/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Delivery request not found"


@pytest.mark.asyncio
async def test_record_and_list_tracking(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    url = f"/api/v1/deliveries/{delivery['id']}/tracking"

    first = await test_client.post(url, json=sample_body(provider_id, created_at="2001-01-01T00:00:00Z"))
    second = await test_client.post(url, json=sample_body(provider_id, status="nearby", latitude=-1.2905))
    assert first.status_code == 201
    assert not first.json()["created_at"].startswith("2001")

    history = await test_client.get(url, params={"limit": 10})
    items = history.json()["items"]
    assert [item["id"] for item in items] == [second.json()["id"], first.json()["id"]]
    assert items[0]["status"] == "nearby"

    latest_only = await test_client.get(url, params={"limit": 1})
    assert latest_only.json()["total"] == 1


@pytest.mark.asyncio
async def test_tracking_rejects_bad_input(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    url = f"/api/v1/deliveries/{delivery['id']}/tracking"

    bad_status = await test_client.post(url, json=sample_body(provider_id, status="teleported"))
    bad_latitude = await test_client.post(url, json=sample_body(provider_id, latitude=91))
    wrong_provider = await test_client.post(url, json=sample_body(uuid4()))

    assert bad_status.status_code == 422
    assert bad_latitude.status_code == 422
    assert wrong_provider.status_code == 403


@pytest.mark.asyncio
async def test_tracking_summary(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    base = f"/api/v1/deliveries/{delivery['id']}/tracking"

    empty = await test_client.get(f"{base}/summary")
    assert empty.json()["latest"] is None
    assert empty.json()["map_url"] is None

    await test_client.post(base, json=sample_body(provider_id))
    summary = (await test_client.get(f"{base}/summary")).json()

    assert summary["delivery_status"] == "accepted"
    assert summary["map_url"] == f"https://www.google.com/maps?q={NAIROBI[0]},{NAIROBI[1]}&z=15"
    assert summary["distance_to_destination_km"] == pytest.approx(4.1, abs=0.2)


@pytest.mark.asyncio
async def test_communication_hub(test_client, builder_id, provider_id):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    base = f"/api/v1/deliveries/{delivery['id']}"
    sender = {"sender_type": "delivery_provider", "sender_id": str(provider_id), "sender_name": "Juma"}

    message = await test_client.post(f"{base}/communications", json={**sender, "content": "Leaving the depot"})
    update = await test_client.post(
        f"{base}/status-updates",
        json={**sender, "status": "nearby", "latitude": -1.2905, "longitude": 36.79, "notes": "Gate B"},
    )
    share = await test_client.post(f"{base}/location-shares", json={**sender, "latitude": -1.29, "longitude": 36.79})
    blank = await test_client.post(f"{base}/communications", json={**sender, "content": "   "})

    assert message.status_code == 201
    assert update.json()["message_type"] == "status_update"
    assert update.json()["content"] == "Status updated to: nearby"
    assert update.json()["payload"]["notes"] == "Gate B"
    assert share.json()["message_type"] == "location_update"
    assert blank.status_code == 422

    listing = (await test_client.get(f"{base}/communications")).json()
    assert [item["message_type"] for item in listing["items"]] == ["text", "status_update", "location_update"]


@pytest.mark.asyncio
async def test_live_tracking_feed_receives_inserts(test_client, gateway, builder_id, provider_id, change_feed):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    delivery_id = UUID(delivery["id"])
    controller = TrackingController(gateway)
    received = []
    subscription = await controller.subscribe(delivery_id, received.append)
    assert change_feed.open_count == 1

    await test_client.post(f"/api/v1/deliveries/{delivery['id']}/tracking", json=sample_body(provider_id))
    await controller.record_sample(
        delivery_id,
        TrackingSampleCreate(**sample_body(provider_id, status="nearby")),
    )

    assert [s.status.value for s in received] == ["en_route", "nearby"]
    subscription.close()
    assert change_feed.open_count == 0


def test_app_routes_registered():
    paths = {route.path for route in app.routes}

    assert "/api/v1/deliveries/{delivery_id}/tracking/live" in paths
    assert "/api/v1/deliveries/{delivery_id}/communications/live" in paths
    assert "/api/v1/deliveries/{delivery_id}/tracking/summary" in paths
    assert "/health" in paths


@pytest.mark.asyncio
async def test_live_tracking_websocket_releases_channel_on_idle_disconnect(
    test_client, builder_id, provider_id, change_feed,
):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    base = f"/api/v1/deliveries/{delivery['id']}/tracking"
    session = WebSocketSession(app, f"{base}/live")

    assert (await session.receive())["type"] == "websocket.accept"
    assert change_feed.open_count == 1

    # client chatter is ignored
    await session.send_text("ping")
    await test_client.post(base, json=sample_body(provider_id))
    pushed = await session.receive_json()
    assert pushed["delivery_request_id"] == delivery["id"]
    assert pushed["status"] == "en_route"

    # nothing is queued, so only the disconnect itself can end the stream
    await session.disconnect()
    assert change_feed.open_count == 0


@pytest.mark.asyncio
async def test_live_websocket_rejects_unknown_delivery(test_client, change_feed):
    session = WebSocketSession(app, f"/api/v1/deliveries/{uuid4()}/tracking/live")

    assert (await session.receive())["type"] == "websocket.accept"
    error = await session.receive_json()
    closed = await session.receive()
    await session.finished()

    assert error["error"]["message"] == "Delivery request not found"
    assert closed["type"] == "websocket.close"
    assert closed["code"] == 1008
    assert change_feed.open_count == 0


@pytest.mark.asyncio
async def test_live_communications_websocket(test_client, builder_id, provider_id, change_feed):
    delivery = await create_and_accept(test_client, builder_id, provider_id)
    base = f"/api/v1/deliveries/{delivery['id']}"
    sender = {"sender_type": "builder", "sender_id": str(builder_id), "sender_name": "Wanjiru"}
    session = WebSocketSession(app, f"{base}/communications/live")
    assert (await session.receive())["type"] == "websocket.accept"

    await test_client.post(f"{base}/communications", json={**sender, "content": "Gate code is 4411"})
    await test_client.post(f"{base}/location-shares", json={**sender, "latitude": -1.29, "longitude": 36.79})
    first = await session.receive_json()
    second = await session.receive_json()

    assert [first["message_type"], second["message_type"]] == ["text", "location_update"]
    assert first["content"] == "Gate code is 4411"
    assert first["delivery_request_id"] == delivery["id"]

    await session.disconnect()
    assert change_feed.open_count == 0


@pytest.mark.asyncio
async def test_communication_controller_subscribe_requires_delivery(gateway, change_feed):
    controller = CommunicationController(gateway)

    with pytest.raises(NotFoundError):
        await controller.subscribe(uuid4(), lambda message: None)
    assert change_feed.open_count == 0


@pytest.mark.asyncio
async def test_error_envelopes_and_fault_accounting(test_client, monkeypatch):
    missing = await test_client.get(f"/api/v1/deliveries/{uuid4()}")
    unknown_route = await test_client.get("/api/v1/nowhere")

    assert missing.status_code == 404
    assert missing.json()["error"]["path"].startswith("/api/v1/deliveries/")
    assert unknown_route.status_code == 404
    assert unknown_route.json()["error"]["status_code"] == 404
    assert exception_counts().get("NotFoundError") is None

    async def unavailable(self, delivery_id):
        raise BackendUnavailableError()

    monkeypatch.setattr(DeliveryService, "require_delivery", unavailable)
    down = await test_client.get(f"/api/v1/deliveries/{uuid4()}")

    assert down.status_code == 503
    assert down.json()["error"]["message"] == "Data backend unavailable"
    assert exception_counts()["BackendUnavailableError"] >= 1
