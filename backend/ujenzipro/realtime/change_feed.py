"""
In-process change feed.

The gateway publishes every committed insert/update here; subscribers
register a table, an event kind and equality filters and receive each
matching row until they close their subscription.
"""

import enum
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union
from uuid import UUID

logger = logging.getLogger(__name__)


class ChangeEvent(str, enum.Enum):
    """Kinds of row changes a subscriber can listen for."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    ALL = "*"


@dataclass(frozen=True)
class ChangePayload:
    """One change notification delivered to a subscriber."""
    table: str
    event: ChangeEvent
    new: Dict[str, Any]
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ChangeCallback = Callable[[ChangePayload], Union[None, Awaitable[None]]]


def _normalize(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


class Subscription:
    """
    Handle for one open channel on the change feed.

    Closing is idempotent. The handle works as a sync or async context
    manager so the channel is released on every exit path.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        subscription_id: int,
        table: str,
        event: ChangeEvent,
        filters: Mapping[str, Any],
        callback: ChangeCallback,
    ):
        self._feed = feed
        self.id = subscription_id
        self.table = table
        self.event = ChangeEvent(event)
        self.filters = {key: _normalize(value) for key, value in filters.items()}
        self.callback = callback
        self.closed = False

    def matches(self, table: str, event: ChangeEvent, row: Mapping[str, Any]) -> bool:
        if self.closed or table != self.table:
            return False
        if self.event is not ChangeEvent.ALL and self.event != event:
            return False
        return all(_normalize(row.get(key)) == value for key, value in self.filters.items())

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Subscription {self.id} {self.event.value} {self.table} {self.filters} {state}>"


class ChangeFeed:
    """Fan-out of committed row changes to filtered subscribers."""

    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def open_count(self) -> int:
        """Number of channels currently open."""
        return len(self._subscriptions)

    def subscribe(
        self,
        table: str,
        event: ChangeEvent,
        filters: Optional[Mapping[str, Any]],
        callback: ChangeCallback,
    ) -> Subscription:
        """
        Open a channel for `event` changes on `table` matching `filters`.

        Args:
            table: Table name, e.g. "delivery_tracking"
            event: INSERT, UPDATE or ALL
            filters: Column equality filters applied before delivery
            callback: Called with a ChangePayload; may be a coroutine function

        Returns:
            Subscription handle; call close() to release it
        """
        subscription = Subscription(self, next(self._ids), table, event, filters or {}, callback)
        self._subscriptions[subscription.id] = subscription
        logger.debug("Channel opened", extra={"subscription": repr(subscription)})
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)
        logger.debug("Channel closed", extra={"subscription": repr(subscription)})

    async def publish(self, table: str, event: ChangeEvent, row: Dict[str, Any]) -> int:
        """
        Deliver a committed change to every matching subscriber, in
        subscription order.

        Returns:
            Number of subscribers the change was delivered to
        """
        payload = ChangePayload(table=table, event=ChangeEvent(event), new=dict(row))
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            # A callback earlier in this loop may have closed later subscriptions
            if not subscription.matches(table, payload.event, payload.new):
                continue
            try:
                result = subscription.callback(payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(
                    "Change feed subscriber failed",
                    extra={"table": table, "subscription_id": subscription.id},
                )
        return delivered

    def close_all(self) -> None:
        """Close every open channel (application shutdown)."""
        subscriptions: List[Subscription] = list(self._subscriptions.values())
        for subscription in subscriptions:
            subscription.close()
