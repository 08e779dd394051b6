"""Tests for the reconcile work queue."""

import asyncio

import pytest

from workqueue import ShutDown, WorkQueue


@pytest.mark.asyncio
class TestWorkQueue:
    """Tests for deduplication and per-key serialization."""

    async def test_deduplicates_waiting_keys(self):
        queue = WorkQueue()
        queue.add("ns1/a")
        queue.add("ns1/a")
        queue.add("ns1/b")

        assert len(queue) == 2
        assert await queue.get() == "ns1/a"
        assert await queue.get() == "ns1/b"

    async def test_key_not_handed_out_while_processing(self):
        queue = WorkQueue()
        queue.add("ns1/a")
        key = await queue.get()

        queue.add(key)

        assert queue.is_processing(key)
        assert len(queue) == 0

        queue.done(key)

        assert len(queue) == 1
        assert await queue.get() == key

    async def test_done_without_new_add_does_not_requeue(self):
        queue = WorkQueue()
        queue.add("ns1/a")
        key = await queue.get()
        queue.done(key)

        assert len(queue) == 0
        assert not queue.is_processing(key)

    async def test_get_waits_for_add(self):
        queue = WorkQueue()
        getter = asyncio.ensure_future(queue.get())
        await asyncio.sleep(0)
        assert not getter.done()

        queue.add("ns1/a")

        assert await asyncio.wait_for(getter, timeout=1) == "ns1/a"

    async def test_add_after(self):
        queue = WorkQueue()
        queue.add_after("ns1/a", 0.01)
        assert len(queue) == 0

        assert await asyncio.wait_for(queue.get(), timeout=1) == "ns1/a"

    async def test_fired_timers_released(self):
        """Delayed adds that have fired leave no timer behind."""
        queue = WorkQueue()
        for _ in range(100):
            queue.add_after("ns1/a", 0.001)
            key = await asyncio.wait_for(queue.get(), timeout=1)
            queue.done(key)

        assert len(queue._timers) == 0

    async def test_pending_timers_kept_until_fired(self):
        queue = WorkQueue()
        queue.add_after("ns1/a", 60)
        queue.add_after("ns1/b", 60)

        assert len(queue._timers) == 2

        await queue.shutdown()
        assert len(queue._timers) == 0

    async def test_wakeups_tracked_until_finished(self):
        """Notify tasks are referenced while pending and released afterwards."""
        queue = WorkQueue()
        queue.add("ns1/a")
        queue.add("ns1/b")

        assert len(queue._wakeups) == 2

        for _ in range(5):
            await asyncio.sleep(0)

        assert len(queue._wakeups) == 0
        assert await queue.get() == "ns1/a"

    async def test_add_after_non_positive_adds_now(self):
        queue = WorkQueue()
        queue.add_after("ns1/a", 0)
        assert len(queue) == 1

    async def test_shutdown(self):
        queue = WorkQueue()
        getter = asyncio.ensure_future(queue.get())
        await asyncio.sleep(0)
        queue.add_after("ns1/a", 60)

        await queue.shutdown()

        with pytest.raises(ShutDown):
            await asyncio.wait_for(getter, timeout=1)
        queue.add("ns1/b")
        assert len(queue) == 0


class TestBackoff:
    """Tests for the rate-limited retry delay."""

    def test_grows_exponentially(self):
        queue = WorkQueue(base_delay=1.0, max_delay=300.0, random_fn=lambda: 0.5)
        delays = []
        for _ in range(4):
            delays.append(queue.backoff_delay("k"))
            queue._failures["k"] = queue.num_requeues("k") + 1
        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        queue = WorkQueue(base_delay=1.0, max_delay=10.0, random_fn=lambda: 0.5)
        queue._failures["k"] = 50
        assert queue.backoff_delay("k") == 10.0

    def test_jitter_bounds(self):
        low = WorkQueue(jitter_factor=0.1, random_fn=lambda: 0.0)
        high = WorkQueue(jitter_factor=0.1, random_fn=lambda: 1.0)
        assert low.backoff_delay("k") == pytest.approx(0.9)
        assert high.backoff_delay("k") == pytest.approx(1.1)

    @pytest.mark.asyncio
    async def test_add_rate_limited_counts_failures(self):
        queue = WorkQueue(random_fn=lambda: 0.5)
        assert queue.add_rate_limited("k") == 1.0
        assert queue.add_rate_limited("k") == 2.0
        assert queue.num_requeues("k") == 2

        queue.forget("k")

        assert queue.num_requeues("k") == 0
        await queue.shutdown()
