"""In-process publish/subscribe channel for pipeline progress events."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Callable, Iterable, Iterator, Optional

LOGGER = logging.getLogger(__name__)

MOVE_FILES_CHANNEL = "moveFilesNotifications"
REFRESH_FILES_CHANNEL = "refreshFilesNotifications"
JOB_CHANNEL = "jobNotifications"

CHANNELS = frozenset({MOVE_FILES_CHANNEL, REFRESH_FILES_CHANNEL, JOB_CHANNEL})


class MoveResult(IntEnum):
    """Status codes carried by relocation events."""

    MOVED = 0
    FAILED = 1
    ID_NOT_PRESENT = 2
    COMPLETED = 3


class SyncStage(IntEnum):
    """Progress stages carried by synchronization events."""

    STARTED = 0
    SCANNED = 1
    CLASSIFIED = 2
    PERSISTED = 3
    COMPLETED = 4
    FAILED = 5


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """A progress message published on a channel.

    Attributes:
        channel: Channel name the event was published on.
        subject: Record id, category or job id the message refers to.
        message: Human-readable text.
        status: Integer status drawn from :class:`MoveResult` or :class:`SyncStage`.
        job_id: Identifier of the job that produced the event, if any.
        timestamp: Publication time.
    """

    channel: str
    subject: object
    message: str
    status: int
    job_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription:
    """Receives events for a set of channels until closed."""

    def __init__(
        self,
        hub: "NotificationHub",
        channels: frozenset[str] | None,
        callback: Callable[[NotificationEvent], None] | None,
    ) -> None:
        self._hub = hub
        self._channels = channels
        self._callback = callback
        self._queue: queue.Queue[NotificationEvent] = queue.Queue()
        self.closed = False

    def accepts(self, event: NotificationEvent) -> bool:
        return self._channels is None or event.channel in self._channels

    def deliver(self, event: NotificationEvent) -> None:
        if self._callback is not None:
            self._callback(event)
        else:
            self._queue.put(event)

    def get(self, timeout: float | None = None) -> NotificationEvent:
        """Block until the next event arrives.

        Raises:
            queue.Empty: If ``timeout`` elapses first.
        """
        return self._queue.get(timeout=timeout)

    def drain(self) -> list[NotificationEvent]:
        """Return every event received so far without blocking."""
        events: list[NotificationEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[NotificationEvent]:
        return iter(self.drain())

    def close(self) -> None:
        self._hub.unsubscribe(self)
        self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


class NotificationHub:
    """Broadcast events to every live subscriber, in publication order.

    Publication is serialized so that all subscribers observe events in the
    same order. Nothing is retained: subscribers joining later miss earlier
    events.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    def subscribe(
        self,
        channels: Iterable[str] | None = None,
        *,
        callback: Callable[[NotificationEvent], None] | None = None,
    ) -> Subscription:
        """Register a subscriber.

        Args:
            channels: Channel names to receive; all channels when omitted.
            callback: Called synchronously for each event instead of queueing.

        Returns:
            Subscription: Handle used to read events and unsubscribe.
        """
        selected = frozenset(channels) if channels is not None else None
        if selected is not None:
            unknown = selected - CHANNELS
            if unknown:
                raise ValueError(f"Unknown notification channels: {sorted(unknown)}")
        subscription = Subscription(self, selected, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, event: NotificationEvent) -> None:
        """Deliver ``event`` to matching subscribers."""
        LOGGER.debug("[%s] %s: %s (%d)", event.channel, event.subject, event.message, event.status)
        with self._lock:
            for subscription in list(self._subscriptions):
                if not subscription.accepts(event):
                    continue
                try:
                    subscription.deliver(event)
                except Exception:
                    LOGGER.exception("Notification subscriber failed on %s", event.channel)

    def send(
        self,
        channel: str,
        subject: object,
        message: str,
        status: int,
        *,
        job_id: str | None = None,
    ) -> NotificationEvent:
        """Build and publish an event in one call."""
        event = NotificationEvent(
            channel=channel, subject=subject, message=message, status=int(status), job_id=job_id
        )
        self.publish(event)
        return event


__all__ = [
    "NotificationHub",
    "NotificationEvent",
    "Subscription",
    "MoveResult",
    "SyncStage",
    "MOVE_FILES_CHANNEL",
    "REFRESH_FILES_CHANNEL",
    "JOB_CHANNEL",
    "CHANNELS",
]
