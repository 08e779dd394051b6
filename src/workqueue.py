"""
Work queue for reconcile requests.

Keys are deduplicated while waiting, and a key is never handed to two
workers at once: adding a key that is being processed marks it dirty and
it is queued again when the worker calls done(). Failed keys are re-added
with exponential backoff and jitter.
"""

import asyncio
import logging
import random
from collections import deque
from typing import Callable, Deque, Dict, Hashable, Set

logger = logging.getLogger(__name__)


class ShutDown(Exception):
    """Raised by get() once the queue has been shut down."""


class WorkQueue:
    """Deduplicating, delaying, rate-limited queue of hashable keys."""

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        jitter_factor: float = 0.1,
        random_fn: Callable[[], float] = random.random,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_factor = jitter_factor
        self._random = random_fn

        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._failures: Dict[Hashable, int] = {}
        self._timers: Set[asyncio.TimerHandle] = set()
        self._wakeups: Set[asyncio.Future] = set()
        self._cond = asyncio.Condition()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    def add(self, key: Hashable) -> None:
        """Queue a key unless it is already waiting."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._wake()

    def add_after(self, key: Hashable, delay: float) -> None:
        """Queue a key once ``delay`` seconds have passed."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return
        loop = asyncio.get_running_loop()
        handle = None

        def fire() -> None:
            self._timers.discard(handle)
            self.add(key)

        handle = loop.call_later(delay, fire)
        self._timers.add(handle)

    def backoff_delay(self, key: Hashable) -> float:
        """Delay for the key's next retry, growing with its failure count."""
        failures = self._failures.get(key, 0)
        delay = min(self.base_delay * (2 ** min(failures, 30)), self.max_delay)
        jitter = 1 + (self._random() * 2 - 1) * self.jitter_factor
        return delay * jitter

    def add_rate_limited(self, key: Hashable) -> float:
        """Queue a failed key after its backoff delay; returns the delay used."""
        delay = self.backoff_delay(key)
        self._failures[key] = self._failures.get(key, 0) + 1
        self.add_after(key, delay)
        return delay

    def forget(self, key: Hashable) -> None:
        """Reset the failure count of a key."""
        self._failures.pop(key, None)

    def num_requeues(self, key: Hashable) -> int:
        return self._failures.get(key, 0)

    def _wake(self) -> None:
        # Referenced until the notify task finishes
        task = asyncio.ensure_future(self._notify())
        self._wakeups.add(task)
        task.add_done_callback(self._wakeups.discard)

    async def _notify(self) -> None:
        async with self._cond:
            self._cond.notify()

    async def get(self) -> Hashable:
        """
        Wait for the next key and mark it as processing.

        Raises:
            ShutDown: Once shutdown() has been called
        """
        async with self._cond:
            while not self._queue and not self._shutting_down:
                await self._cond.wait()
            if self._shutting_down:
                raise ShutDown()
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: Hashable) -> None:
        """Mark a key as processed, re-queueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty:
            self._queue.append(key)
            self._wake()

    def is_processing(self, key: Hashable) -> bool:
        return key in self._processing

    async def shutdown(self) -> None:
        """Stop handing out keys and cancel pending delayed adds."""
        self._shutting_down = True
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        async with self._cond:
            self._cond.notify_all()
