"""
Watch events, the KogitoRuntime event filter, and the pass event bus.

The filter decides which watch notifications enqueue a reconcile pass.
The bus fans out pass outcomes to streaming subscribers of the status API.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of watch notifications."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass
class WatchEvent:
    """A single watch notification and the object state it carries."""

    event_type: EventType
    obj: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "WatchEvent":
        """
        Build an event from a watch stream item.

        Uses ``raw_object`` when present so typed and custom-object watches
        both yield plain dicts.
        """
        obj = raw.get("raw_object")
        if obj is None:
            obj = raw.get("object") or {}
        return cls(event_type=EventType(raw["type"]), obj=obj)

    @property
    def deletion_timestamp(self) -> Optional[str]:
        return (self.obj.get("metadata") or {}).get("deletionTimestamp")


class RuntimePredicate:
    """
    Filter for KogitoRuntime watch notifications.

    Deletions are left to the finalizer path, and updates to objects
    already marked for deletion are dropped.
    """

    def create(self, event: WatchEvent) -> bool:
        return True

    def update(self, event: WatchEvent) -> bool:
        return not event.deletion_timestamp

    def delete(self, event: WatchEvent) -> bool:
        return False

    def __call__(self, event: WatchEvent) -> bool:
        if event.event_type is EventType.ADDED:
            return self.create(event)
        if event.event_type is EventType.MODIFIED:
            return self.update(event)
        if event.event_type is EventType.DELETED:
            return self.delete(event)
        return False


class PassOutcome(Enum):
    """Terminal state of a reconcile pass."""

    DONE = "done"
    REQUEUED = "requeued"
    FAILED = "failed"


@dataclass
class PassEvent:
    """Record of a finished reconcile pass."""

    namespace: str
    name: str
    outcome: PassOutcome
    timestamp: str
    duration_seconds: float = 0.0
    requeue_after: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data

    def to_sse(self) -> str:
        """
        Format the event as an SSE message.

        Returns:
            SSE-formatted string with event type and JSON data lines.
        """
        json_data = json.dumps(self.to_dict())
        return f"event: {self.outcome.value}\ndata: {json_data}\n\n"


class EventSubscription:
    """
    Async iterator for consuming events from a subscription.

    Reads events from a queue, applying an optional filter function.
    A ``None`` sentinel value stops iteration.
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        filter_fn: Optional[Callable[[PassEvent], bool]] = None,
    ):
        self._queue = queue
        self._filter_fn = filter_fn

    def __aiter__(self) -> AsyncIterator[PassEvent]:
        return self

    async def __anext__(self) -> PassEvent:
        while True:
            event = await self._queue.get()

            if event is None:
                raise StopAsyncIteration

            if self._filter_fn is None or self._filter_fn(event):
                return event


class EventBus:
    """
    In-memory pub/sub bus for pass events.

    One bounded queue per subscriber; publishing never blocks the
    controller and drops events for subscribers that fall behind.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: Dict[str, asyncio.Queue] = {}

    def publish(self, event: PassEvent) -> None:
        """Publish an event to all current subscribers."""
        for subscriber_id, queue in list(self._subscribers.items()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropped event for subscriber {subscriber_id}: queue full"
                )

    def subscribe(
        self,
        filter_fn: Optional[Callable[[PassEvent], bool]] = None,
    ) -> Tuple[str, EventSubscription]:
        """
        Subscribe to events.

        Args:
            filter_fn: Optional predicate applied to each event.

        Returns:
            A tuple of ``(subscriber_id, EventSubscription)``.
        """
        subscriber_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[subscriber_id] = queue
        logger.debug(f"New event subscriber: {subscriber_id}")
        return subscriber_id, EventSubscription(queue, filter_fn)

    def unsubscribe(self, subscriber_id: str) -> None:
        """
        Remove a subscriber.

        Sends a ``None`` sentinel so the subscription's iterator ends.
        """
        queue = self._subscribers.pop(subscriber_id, None)
        if queue is None:
            return
        try:
            queue.put_nowait(None)
        except asyncio.QueueFull:
            # Make room for the sentinel
            queue.get_nowait()
            queue.put_nowait(None)
        logger.debug(f"Unsubscribed: {subscriber_id}")

    def subscriber_count(self) -> int:
        """Return the current number of subscribers."""
        return len(self._subscribers)
