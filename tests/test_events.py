"""Tests for watch events, the KogitoRuntime filter and the pass event bus."""

import asyncio
import json

import pytest

from events import (
    EventBus,
    EventType,
    PassEvent,
    PassOutcome,
    RuntimePredicate,
    WatchEvent,
)

from conftest import make_runtime


def _deleting(obj):
    obj["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    return obj


def _pass_event(namespace="ns1", name="svc-a", outcome=PassOutcome.DONE):
    return PassEvent(
        namespace=namespace,
        name=name,
        outcome=outcome,
        timestamp="2024-01-01T00:00:00+00:00",
    )


class TestWatchEvent:
    """Tests for WatchEvent.from_raw."""

    def test_prefers_raw_object(self):
        raw = {"type": "ADDED", "object": object(), "raw_object": {"a": 1}}
        event = WatchEvent.from_raw(raw)
        assert event.event_type is EventType.ADDED
        assert event.obj == {"a": 1}

    def test_falls_back_to_object(self):
        event = WatchEvent.from_raw({"type": "MODIFIED", "object": {"b": 2}})
        assert event.event_type is EventType.MODIFIED
        assert event.obj == {"b": 2}

    def test_deletion_timestamp(self):
        assert WatchEvent(EventType.MODIFIED, make_runtime()).deletion_timestamp is None
        event = WatchEvent(EventType.MODIFIED, _deleting(make_runtime()))
        assert event.deletion_timestamp == "2024-01-01T00:00:00Z"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            WatchEvent.from_raw({"type": "SYNC", "object": {}})


class TestRuntimePredicate:
    """Tests for the KogitoRuntime event filter."""

    def setup_method(self):
        self.predicate = RuntimePredicate()

    def test_create_always_accepted(self):
        assert self.predicate(WatchEvent(EventType.ADDED, make_runtime()))
        assert self.predicate(WatchEvent(EventType.ADDED, _deleting(make_runtime())))

    def test_update_accepted_when_live(self):
        assert self.predicate(WatchEvent(EventType.MODIFIED, make_runtime()))

    def test_update_rejected_when_deleting(self):
        event = WatchEvent(EventType.MODIFIED, _deleting(make_runtime()))
        assert self.predicate(event) is False

    def test_delete_always_rejected(self):
        assert self.predicate(WatchEvent(EventType.DELETED, make_runtime())) is False
        event = WatchEvent(EventType.DELETED, _deleting(make_runtime()))
        assert self.predicate(event) is False

    @pytest.mark.parametrize("event_type", [EventType.BOOKMARK, EventType.ERROR])
    def test_other_types_rejected(self, event_type):
        assert self.predicate(WatchEvent(event_type, {})) is False

    def test_is_pure(self):
        obj = make_runtime()
        event = WatchEvent(EventType.MODIFIED, obj)
        results = {self.predicate(event) for _ in range(3)}
        assert results == {True}
        assert obj == make_runtime()


class TestPassEvent:
    """Tests for PassEvent serialization."""

    def test_to_dict(self):
        event = PassEvent(
            namespace="ns1",
            name="svc-a",
            outcome=PassOutcome.REQUEUED,
            timestamp="2024-01-01T00:00:00+00:00",
            duration_seconds=0.5,
            requeue_after=30,
        )
        assert event.to_dict() == {
            "namespace": "ns1",
            "name": "svc-a",
            "outcome": "requeued",
            "timestamp": "2024-01-01T00:00:00+00:00",
            "duration_seconds": 0.5,
            "requeue_after": 30,
            "error": None,
        }

    def test_to_sse(self):
        sse = _pass_event(outcome=PassOutcome.FAILED).to_sse()
        lines = sse.split("\n")
        assert lines[0] == "event: failed"
        assert lines[1].startswith("data: ")
        assert json.loads(lines[1][len("data: ") :])["outcome"] == "failed"
        assert sse.endswith("\n\n")


@pytest.mark.asyncio
class TestEventBus:
    """Tests for EventBus publish/subscribe."""

    async def test_publish_to_subscriber(self):
        bus = EventBus()
        _, subscription = bus.subscribe()
        event = _pass_event()

        bus.publish(event)

        received = await asyncio.wait_for(subscription.__anext__(), timeout=1)
        assert received is event

    async def test_filter(self):
        bus = EventBus()
        _, subscription = bus.subscribe(lambda e: e.namespace == "ns2")

        bus.publish(_pass_event(namespace="ns1"))
        bus.publish(_pass_event(namespace="ns2"))

        received = await asyncio.wait_for(subscription.__anext__(), timeout=1)
        assert received.namespace == "ns2"

    async def test_unsubscribe_ends_iteration(self):
        bus = EventBus()
        subscriber_id, subscription = bus.subscribe()
        bus.publish(_pass_event())
        bus.unsubscribe(subscriber_id)

        received = [event async for event in subscription]

        assert len(received) == 1
        assert bus.subscriber_count() == 0

    async def test_full_queue_drops_events(self):
        bus = EventBus(queue_size=1)
        subscriber_id, subscription = bus.subscribe()
        bus.publish(_pass_event(name="first"))
        bus.publish(_pass_event(name="second"))

        bus.unsubscribe(subscriber_id)

        assert [event async for event in subscription] == []

    async def test_unsubscribe_unknown_is_noop(self):
        bus = EventBus()
        bus.unsubscribe("missing")
        assert bus.subscriber_count() == 0
