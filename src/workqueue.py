"""
Work Queue - Keyed, de-duplicating queue with rate-limited requeue.

Modelled on the Kubernetes client work queue: a key waiting in the queue is
not added twice, and a key that is being processed is held back until
``done()`` so at most one pass per key is ever in flight.
"""

import asyncio
import logging
import random
from typing import Dict, Hashable, Set

logger = logging.getLogger(__name__)


class ShutDown(Exception):
    """Raised by get() once the queue has been shut down."""


class WorkQueue:
    """
    Async work queue for reconciliation keys.

    Failed keys are re-added after an exponential backoff with jitter:
    ``min(base * 2**failures, max) * (1 +/- jitter)``.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        jitter_factor: float = 0.1,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_factor = jitter_factor

        self._queue: asyncio.Queue = asyncio.Queue()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._failures: Dict[Hashable, int] = {}
        self._timers: Dict[Hashable, asyncio.TimerHandle] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        return self._queue.qsize()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: Hashable) -> None:
        """Queue a key unless it is already waiting."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key not in self._processing:
            self._queue.put_nowait(key)

    async def get(self) -> Hashable:
        """
        Wait for the next key and mark it as processing.

        Raises:
            ShutDown: If the queue is shut down
        """
        key = await self._queue.get()
        if key is None:
            # Wake the next waiter too
            self._queue.put_nowait(None)
            raise ShutDown()
        self._dirty.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: Hashable) -> None:
        """Mark a key as processed, re-queueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.put_nowait(key)

    def backoff_delay(self, key: Hashable) -> float:
        """Delay before the next retry of a key, based on its failure count."""
        failures = self._failures.get(key, 0)
        delay = min(self.base_delay * (2 ** min(failures, 30)), self.max_delay)
        jitter = 1 + (random.random() * 2 - 1) * self.jitter_factor
        return delay * jitter

    def add_after(self, key: Hashable, delay: float) -> None:
        """Add a key once the delay has elapsed."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire_timer, key)

    def _fire_timer(self, key: Hashable) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: Hashable) -> float:
        """
        Re-add a failed key after its backoff delay.

        Returns:
            The delay applied, in seconds
        """
        delay = self.backoff_delay(key)
        self._failures[key] = self._failures.get(key, 0) + 1
        logger.debug(
            f"Requeueing {key} in {delay:.2f}s (failures: {self._failures[key]})"
        )
        self.add_after(key, delay)
        return delay

    def forget(self, key: Hashable) -> None:
        """Reset the failure count of a key after a successful pass."""
        self._failures.pop(key, None)

    def failures(self, key: Hashable) -> int:
        return self._failures.get(key, 0)

    def shutdown(self) -> None:
        """Stop accepting keys and release every waiting get()."""
        if self._shutting_down:
            return
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._queue.put_nowait(None)

    def is_pending(self, key: Hashable) -> bool:
        """True when the key is waiting in the queue."""
        return key in self._dirty
