"""
Pytest configuration and fixtures.
Provides an in-memory database, the data gateway, the test app client and
fakes for the device clock and location source.
"""

import asyncio
import json
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from dependency_injector import providers
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from uuid import uuid4

import ujenzipro.deps.di_container as di_module
from ujenzipro.db.gateway import SqlAlchemyGateway
from ujenzipro.db.init_db import create_tables, drop_tables
from ujenzipro.deps.di_container import get_gateway
from ujenzipro.main import app
from ujenzipro.models.status import ProviderResponse
from ujenzipro.realtime.change_feed import ChangeFeed
from ujenzipro.schemas.delivery import DeliveryRequestCreate, DeliveryResponseRequest
from ujenzipro.services.delivery_service import DeliveryService
from ujenzipro.services.tracking_service import TrackingService
from ujenzipro.tracking.geolocation import Position, PositionOptions
from ujenzipro.tracking.notifications import NotificationCenter


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NAIROBI = (-1.2921, 36.8219)


class FakeClock:
    """Monotonic clock advanced by the replayed location source."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.advance(seconds)
        await asyncio.sleep(0)


def make_track(count: int, start=NAIROBI, step: float = 0.0001):
    """A straight-line track of `count` distinct positions."""
    latitude, longitude = start
    return [
        Position(latitude=latitude + i * step, longitude=longitude + i * step, accuracy=8.0, speed=7.5)
        for i in range(count)
    ]


FAST_OPTIONS = PositionOptions(enable_high_accuracy=True, timeout=0.2, maximum_age=5.0)


class WebSocketSession:
    """
    WebSocket client driving the app directly over ASGI on the test loop,
    so disconnects reach the handler exactly as a server would deliver them.
    """

    def __init__(self, asgi_app, path: str):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.outgoing: asyncio.Queue = asyncio.Queue()
        scope = {
            "type": "websocket",
            "asgi": {"version": "3.0"},
            "scheme": "ws",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"test")],
            "server": ("test", 80),
            "client": ("testclient", 50000),
            "subprotocols": [],
        }
        self.incoming.put_nowait({"type": "websocket.connect"})
        self.task = asyncio.create_task(asgi_app(scope, self.incoming.get, self.outgoing.put))

    async def receive(self, timeout: float = 2.0) -> dict:
        return await asyncio.wait_for(self.outgoing.get(), timeout)

    async def receive_json(self) -> dict:
        message = await self.receive()
        assert message["type"] == "websocket.send"
        return json.loads(message["text"])

    async def send_text(self, text: str) -> None:
        await self.incoming.put({"type": "websocket.receive", "text": text})

    async def disconnect(self, timeout: float = 2.0) -> None:
        await self.incoming.put({"type": "websocket.disconnect", "code": 1000})
        await self.finished(timeout)

    async def finished(self, timeout: float = 2.0) -> None:
        """Wait for the handler to return."""
        await asyncio.wait_for(self.task, timeout)


@pytest.fixture(scope="function")
async def test_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)

    yield engine

    await drop_tables(engine)
    await engine.dispose()


@pytest.fixture(scope="function")
def change_feed():
    feed = ChangeFeed()
    yield feed
    feed.close_all()


@pytest.fixture(scope="function")
def gateway(test_engine, change_feed):
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return SqlAlchemyGateway(session_maker, change_feed)


@pytest.fixture(scope="function")
def container(gateway):
    """DI container whose gateway is the test gateway."""
    container = di_module.Container()
    container.gateway.override(providers.Object(gateway))
    previous = di_module._container
    di_module._container = container
    yield container
    container.gateway.reset_override()
    di_module._container = previous


@pytest.fixture(scope="function")
async def test_client(gateway, container):
    """
    Create a test HTTP client.
    """
    app.dependency_overrides[get_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def delivery_service(gateway):
    return DeliveryService(gateway)


@pytest.fixture
def tracking_service(gateway):
    return TrackingService(gateway)


@pytest.fixture
def notifier():
    return NotificationCenter(history_size=50)


@pytest.fixture
def builder_id():
    return uuid4()


@pytest.fixture
def provider_id():
    return uuid4()


@pytest.fixture
def clock():
    return FakeClock()


def delivery_payload(builder_id, **overrides) -> DeliveryRequestCreate:
    data = {
        "builder_id": builder_id,
        "pickup_address": "Bamburi Cement Depot, Mombasa Road",
        "pickup_latitude": NAIROBI[0],
        "pickup_longitude": NAIROBI[1],
        "delivery_address": "Kilimani site, Argwings Kodhek Road",
        "delivery_latitude": -1.2900,
        "delivery_longitude": 36.7850,
        "material_type": "cement",
        "quantity": 40,
    }
    data.update(overrides)
    return DeliveryRequestCreate(**data)


@pytest.fixture
def create_accepted_delivery(delivery_service, builder_id, provider_id):
    """Factory creating a delivery already accepted by `provider_id`."""
    async def factory(**overrides):
        delivery = await delivery_service.create_delivery(delivery_payload(builder_id, **overrides))
        return await delivery_service.respond_to_request(
            delivery.id,
            DeliveryResponseRequest(provider_id=provider_id, response=ProviderResponse.ACCEPTED),
        )
    return factory


@pytest.fixture
async def accepted_delivery(create_accepted_delivery):
    return await create_accepted_delivery()
