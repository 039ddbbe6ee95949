"""
Geolocation sampler - watches the provider's device while a delivery is
being tracked and throttles what reaches the tracking log.

At most one sample is written per throttle interval. The first fix is
written as soon as it arrives, and stopping flushes the most recent fix so
the log always ends with the last known position.
"""

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator, Callable, Optional, Union
from uuid import UUID

from ujenzipro.core.config import settings
from ujenzipro.models.status import TrackingStatus
from ujenzipro.tracking.geolocation import (
    GeolocationError,
    LocationSource,
    Position,
    PositionOptions,
    PositionTimeoutError,
    PositionUnavailableError,
)
from ujenzipro.tracking.notifications import NotificationCenter
from ujenzipro.tracking.writer import TrackingWriter

logger = logging.getLogger(__name__)


class TrackingStateError(RuntimeError):
    """start_tracking called while a watch is already running."""


class GeolocationSampler:
    """
    Owns one location watch for one delivery at a time.

    Args:
        source: Device location source
        writer: Tracking writer receiving the throttled samples
        provider_id: Provider whose device is being watched
        notifier: Sink for location errors
        clock: Monotonic clock in seconds, used only for throttling
        throttle_interval: Minimum seconds between two persisted samples
        options: Watch options passed to the source
    """

    def __init__(
        self,
        source: LocationSource,
        writer: TrackingWriter,
        provider_id: UUID,
        notifier: NotificationCenter,
        clock: Callable[[], float] = time.monotonic,
        throttle_interval: Optional[float] = None,
        options: Optional[PositionOptions] = None,
    ):
        self.source = source
        self.writer = writer
        self.provider_id = provider_id
        self.notifier = notifier
        self._clock = clock
        self.throttle_interval = (
            settings.TRACKING_THROTTLE_SECONDS if throttle_interval is None else throttle_interval
        )
        self.options = options or PositionOptions.from_settings()

        self._status = TrackingStatus.EN_ROUTE
        self.notes: Optional[str] = None
        self.delivery_id: Optional[UUID] = None
        self.current_position: Optional[Position] = None
        self.write_count = 0

        self._task: Optional[asyncio.Task] = None
        self._iterator: Optional[AsyncIterator[Position]] = None
        self._inflight: Optional[asyncio.Future] = None
        self._last_persisted_at: Optional[float] = None

    @property
    def status(self) -> TrackingStatus:
        """Status carried into every sample written from now on."""
        return self._status

    @status.setter
    def status(self, value: Union[TrackingStatus, str]) -> None:
        self._status = TrackingStatus(value)

    @property
    def is_tracking(self) -> bool:
        return self.delivery_id is not None

    async def start_tracking(self, delivery_id: UUID) -> bool:
        """
        Open the location watch for a delivery.

        Waits up to `options.timeout` for the first fix, which is written
        immediately. Location failures are reported to the notifier.

        Returns:
            True if a watch is now running, False if the device gave no fix

        Raises:
            TrackingStateError: a watch is already running
        """
        if self.is_tracking:
            raise TrackingStateError(f"Already tracking delivery {self.delivery_id}")

        iterator = self.source.watch_position(self.options).__aiter__()
        error: Optional[GeolocationError] = None
        try:
            first = await asyncio.wait_for(iterator.__anext__(), timeout=self.options.timeout)
        except asyncio.TimeoutError:
            error = PositionTimeoutError()
        except StopAsyncIteration:
            error = PositionUnavailableError("Location watch ended before the first fix")
        except GeolocationError as e:
            error = e

        if error is not None:
            await self._close_iterator(iterator)
            self._report(error, delivery_id)
            return False

        self.delivery_id = delivery_id
        self._last_persisted_at = None
        logger.info("Location watch started", extra={"delivery_id": str(delivery_id)})

        self._iterator = iterator
        await self._observe(first)
        self._task = asyncio.create_task(self._watch(iterator))
        return True

    async def stop_tracking(self) -> None:
        """
        Close the watch and flush the most recent fix.

        The last fix is always written once more, even if it was just
        persisted. Calling this while not tracking does nothing.
        """
        if not self.is_tracking:
            return

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._iterator is not None:
            await self._close_iterator(self._iterator)

        if self._inflight is not None and not self._inflight.done():
            await self._inflight

        # final flush ignores the throttle window
        if self.current_position is not None:
            await self._persist(self.current_position)

        logger.info(
            "Location watch stopped",
            extra={"delivery_id": str(self.delivery_id), "samples_written": self.write_count},
        )
        self.delivery_id = None
        self.current_position = None
        self._inflight = None
        self._iterator = None
        self._last_persisted_at = None

    async def join(self) -> None:
        """Wait until the location source stops producing fixes."""
        if self._task is not None:
            await self._task

    async def _watch(self, iterator: AsyncIterator[Position]) -> None:
        try:
            async for position in iterator:
                await self._observe(position)
        except GeolocationError as e:
            self._report(e, self.delivery_id)
        finally:
            await self._close_iterator(iterator)

    async def _observe(self, position: Position) -> None:
        self.current_position = position
        now = self._clock()
        if self._last_persisted_at is not None and now - self._last_persisted_at < self.throttle_interval:
            return
        # advances even if the write below fails; dropped samples are not retried
        self._last_persisted_at = now
        await self._persist(position)

    async def _persist(self, position: Position) -> None:
        self.write_count += 1
        self._inflight = asyncio.ensure_future(
            self.writer.record_sample(self.delivery_id, self.provider_id, position, self.status, self.notes)
        )
        # a cancelled watch must not abort a write that already left
        await asyncio.shield(self._inflight)

    def _report(self, error: GeolocationError, delivery_id: Optional[UUID]) -> None:
        logger.warning(
            f"Location error: {error}",
            extra={"delivery_id": str(delivery_id), "code": error.code},
        )
        self.notifier.error("Location Error", str(error))

    @staticmethod
    async def _close_iterator(iterator: AsyncIterator[Position]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
