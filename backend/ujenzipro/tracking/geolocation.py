"""
Device geolocation abstractions.

A LocationSource streams fixes for as long as it is iterated; the sampler
owns the iteration and therefore the watch lifetime.
"""

import asyncio
import dataclasses
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional

from ujenzipro.core.config import settings


@dataclass(frozen=True)
class Position:
    """A single device fix."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # metres
    heading: Optional[float] = None  # degrees
    speed: Optional[float] = None  # m/s
    timestamp: float = field(default_factory=time.time, compare=False)


@dataclass(frozen=True)
class PositionOptions:
    """Watch options handed to the location source."""
    enable_high_accuracy: bool = True
    timeout: float = 10.0  # seconds to the first fix
    maximum_age: float = 5.0  # seconds a cached fix may be reused

    @classmethod
    def from_settings(cls) -> "PositionOptions":
        return cls(
            enable_high_accuracy=settings.GEOLOCATION_HIGH_ACCURACY,
            timeout=settings.GEOLOCATION_TIMEOUT_SECONDS,
            maximum_age=settings.GEOLOCATION_MAXIMUM_AGE_SECONDS,
        )


class GeolocationError(Exception):
    """Base error for a failed location request."""
    code = 0
    default_message = "Unable to get current location"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class PermissionDeniedError(GeolocationError):
    code = 1
    default_message = "Location permission denied"


class PositionUnavailableError(GeolocationError):
    code = 2
    default_message = "Location services are unavailable"


class PositionTimeoutError(GeolocationError):
    code = 3
    default_message = "Timed out waiting for a location fix"


class LocationSource(ABC):
    """Source of continuous position updates."""

    @abstractmethod
    def watch_position(self, options: PositionOptions) -> AsyncIterator[Position]:
        """
        Yield positions in the order the device reports them.

        Raises GeolocationError subclasses when the device refuses or fails.
        """


class ReplayLocationSource(LocationSource):
    """
    Replays a recorded track, one fix every `interval` seconds.

    Each fix is re-stamped with the time it is emitted so it is never
    older than the caller's maximum age.
    """

    def __init__(
        self,
        positions: Iterable[Position],
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.positions: List[Position] = list(positions)
        self.interval = interval
        self._sleep = sleep

    async def watch_position(self, options: PositionOptions) -> AsyncIterator[Position]:
        if not self.positions:
            raise PositionUnavailableError("No recorded positions to replay")
        for index, position in enumerate(self.positions):
            if index:
                await self._sleep(self.interval)
            yield dataclasses.replace(position, timestamp=time.time())
