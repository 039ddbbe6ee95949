"""
Geolocation sampler: throttle gate, first-fix failures, stop/flush
semantics and the tracking writer it feeds.
"""

import asyncio
import pytest
from uuid import uuid4

from conftest import FAST_OPTIONS, NAIROBI, make_track
from ujenzipro.models.status import TrackingStatus
from ujenzipro.tracking.geolocation import (
    LocationSource,
    PermissionDeniedError,
    Position,
    PositionUnavailableError,
    ReplayLocationSource,
)
from ujenzipro.tracking.notifications import NotificationVariant
from ujenzipro.tracking.sampler import GeolocationSampler, TrackingStateError
from ujenzipro.tracking.writer import TrackingWriter


class FailingSource(LocationSource):
    """Refuses before producing any fix."""

    def __init__(self, error):
        self.error = error

    async def watch_position(self, options):
        raise self.error
        yield


class SilentSource(LocationSource):
    """Never produces a fix."""

    def __init__(self):
        self.closed = False

    async def watch_position(self, options):
        try:
            await asyncio.Event().wait()
            yield
        finally:
            self.closed = True


class EndedSource(LocationSource):
    """Ends the watch without a fix."""

    async def watch_position(self, options):
        return
        yield


class FlakySource(LocationSource):
    """Produces some fixes and then loses the signal."""

    def __init__(self, positions, sleep):
        self.positions = positions
        self.sleep = sleep

    async def watch_position(self, options):
        for position in self.positions:
            yield position
            await self.sleep(1.0)
        raise PositionUnavailableError("GPS signal lost")


@pytest.fixture
def make_sampler(tracking_service, notifier, provider_id, clock):
    def factory(source, provider=None):
        writer = TrackingWriter(tracking_service, notifier)
        return GeolocationSampler(
            source,
            writer,
            provider or provider_id,
            notifier,
            clock=clock,
            throttle_interval=5.0,
            options=FAST_OPTIONS,
        )
    return factory


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fixes,written_while_tracking,written_after_stop",
    [
        (1, 1, 2),
        (6, 2, 3),
        (12, 3, 4),
        (16, 4, 5),
    ],
)
async def test_throttle_persists_one_sample_per_interval(
    make_sampler, clock, tracking_service, accepted_delivery,
    fixes, written_while_tracking, written_after_stop,
):
    sampler = make_sampler(ReplayLocationSource(make_track(fixes), interval=1.0, sleep=clock.sleep))

    assert await sampler.start_tracking(accepted_delivery.id)
    await sampler.join()
    during = await tracking_service.list_samples(accepted_delivery.id)

    await sampler.stop_tracking()
    after = await tracking_service.list_samples(accepted_delivery.id)

    assert len(during) == written_while_tracking
    assert len(after) == written_after_stop
    assert after[0].latitude == pytest.approx(make_track(fixes)[-1].latitude)


@pytest.mark.asyncio
async def test_first_fix_is_written_immediately(make_sampler, clock, tracking_service, accepted_delivery):
    sampler = make_sampler(ReplayLocationSource(make_track(3), interval=1.0, sleep=clock.sleep))

    await sampler.start_tracking(accepted_delivery.id)
    samples = await tracking_service.list_samples(accepted_delivery.id)

    assert len(samples) >= 1
    assert samples[-1].latitude == NAIROBI[0]
    assert samples[-1].status == TrackingStatus.EN_ROUTE
    await sampler.stop_tracking()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source,expected",
    [
        (FailingSource(PermissionDeniedError()), "permission denied"),
        (ReplayLocationSource([]), "No recorded positions"),
        (EndedSource(), "ended before the first fix"),
    ],
)
async def test_start_reports_location_failures(make_sampler, notifier, accepted_delivery, source, expected):
    sampler = make_sampler(source)

    assert await sampler.start_tracking(accepted_delivery.id) is False

    assert not sampler.is_tracking
    assert notifier.errors[-1].title == "Location Error"
    assert expected in notifier.errors[-1].description


@pytest.mark.asyncio
async def test_start_times_out_without_first_fix(make_sampler, notifier, tracking_service, accepted_delivery):
    source = SilentSource()
    sampler = make_sampler(source)

    assert await sampler.start_tracking(accepted_delivery.id) is False

    assert source.closed
    assert "Timed out" in notifier.errors[-1].description
    assert await tracking_service.list_samples(accepted_delivery.id) == []


@pytest.mark.asyncio
async def test_signal_lost_mid_watch_is_reported(make_sampler, clock, notifier, tracking_service, accepted_delivery):
    sampler = make_sampler(FlakySource(make_track(3), clock.sleep))

    assert await sampler.start_tracking(accepted_delivery.id)
    await sampler.join()

    assert notifier.errors[-1].description == "GPS signal lost"
    assert sampler.is_tracking

    await sampler.stop_tracking()
    samples = await tracking_service.list_samples(accepted_delivery.id)
    assert samples[0].latitude == pytest.approx(make_track(3)[-1].latitude)


@pytest.mark.asyncio
async def test_start_twice_raises(make_sampler, clock, accepted_delivery):
    sampler = make_sampler(ReplayLocationSource(make_track(2), interval=1.0, sleep=clock.sleep))
    await sampler.start_tracking(accepted_delivery.id)

    with pytest.raises(TrackingStateError):
        await sampler.start_tracking(accepted_delivery.id)

    await sampler.stop_tracking()


@pytest.mark.asyncio
async def test_stop_always_flushes_once_and_is_idempotent(make_sampler, clock, tracking_service, accepted_delivery):
    sampler = make_sampler(ReplayLocationSource(make_track(1), interval=1.0, sleep=clock.sleep))

    await sampler.stop_tracking()
    await sampler.start_tracking(accepted_delivery.id)
    await sampler.join()
    await sampler.stop_tracking()
    await sampler.stop_tracking()

    # first fix plus the stop flush of that same fix
    samples = await tracking_service.list_samples(accepted_delivery.id)
    assert not sampler.is_tracking
    assert len(samples) == 2
    assert samples[0].latitude == samples[1].latitude
    assert sampler.write_count == 2


@pytest.mark.asyncio
async def test_status_change_is_flushed_on_stop(make_sampler, clock, tracking_service, accepted_delivery):
    sampler = make_sampler(ReplayLocationSource(make_track(1), interval=1.0, sleep=clock.sleep))

    await sampler.start_tracking(accepted_delivery.id)
    await sampler.join()
    sampler.status = "arrived_at_destination"
    sampler.notes = "At the gate"
    await sampler.stop_tracking()

    samples = await tracking_service.list_samples(accepted_delivery.id)
    assert [s.status for s in samples] == [TrackingStatus.ARRIVED_AT_DESTINATION, TrackingStatus.EN_ROUTE]
    assert samples[0].notes == "At the gate"


@pytest.mark.asyncio
async def test_failed_writes_are_dropped_and_still_throttled(
    make_sampler, clock, notifier, tracking_service, accepted_delivery,
):
    # not the provider assigned to the delivery, so every write is refused
    sampler = make_sampler(
        ReplayLocationSource(make_track(12), interval=1.0, sleep=clock.sleep),
        provider=uuid4(),
    )

    await sampler.start_tracking(accepted_delivery.id)
    await sampler.join()

    assert sampler.write_count == 3
    assert [n.description for n in notifier.errors] == ["Failed to update location"] * 3
    assert await tracking_service.list_samples(accepted_delivery.id) == []
    await sampler.stop_tracking()


@pytest.mark.asyncio
async def test_writer_rejects_unknown_status(tracking_service, notifier, accepted_delivery, provider_id):
    writer = TrackingWriter(tracking_service, notifier)

    with pytest.raises(ValueError):
        await writer.record_sample(accepted_delivery.id, provider_id, Position(*NAIROBI), "teleported")


@pytest.mark.asyncio
async def test_writer_drops_malformed_position(tracking_service, notifier, accepted_delivery, provider_id):
    writer = TrackingWriter(tracking_service, notifier)

    result = await writer.record_sample(
        accepted_delivery.id, provider_id, Position(latitude=123.0, longitude=36.8), TrackingStatus.EN_ROUTE,
    )

    assert result is None
    assert notifier.items[-1].variant is NotificationVariant.DESTRUCTIVE
    assert await tracking_service.list_samples(accepted_delivery.id) == []


@pytest.mark.asyncio
async def test_writer_reports_missing_delivery(tracking_service, notifier, provider_id):
    writer = TrackingWriter(tracking_service, notifier)

    result = await writer.record_sample(uuid4(), provider_id, Position(*NAIROBI), TrackingStatus.EN_ROUTE)

    assert result is None
    assert notifier.errors[-1].title == "Error"
    assert notifier.errors[-1].description == "Failed to update location"
