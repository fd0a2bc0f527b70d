# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/pool.py

"""
Bounded task pool.

Runs awaitables pulled lazily from a producer with at most N in flight.
The producer is only advanced when a slot is free, so a generator that does
bookkeeping before each yield sees that bookkeeping happen at dispatch time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class PoolResult:
    """Outcome counts of one pool run."""
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[BaseException] = field(default_factory=list)


class BoundedTaskPool:
    """Concurrency-limited executor over a lazy producer of awaitables."""

    def __init__(self, producer: Iterable[Awaitable], concurrency: int, log: logging.Logger = None):
        """
        Args:
            producer: Iterable (usually a generator) yielding awaitables
            concurrency: Maximum number of awaitables in flight (>= 1)
            log: Logger for task failures (default: this module's logger)
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency}")
        self.producer = iter(producer)
        self.concurrency = concurrency
        self.log = log or logger

    def _next_task(self):
        """Start the next produced awaitable, or return None when exhausted."""
        try:
            work = next(self.producer)
        except StopIteration:
            return None
        return asyncio.ensure_future(work)

    async def run(self) -> PoolResult:
        """Run until the producer is exhausted and every started task settled."""
        result = PoolResult()
        in_flight = set()
        exhausted = False

        while True:
            while not exhausted and len(in_flight) < self.concurrency:
                task = self._next_task()
                if task is None:
                    exhausted = True
                    break
                in_flight.add(task)
                result.started += 1

            if not in_flight:
                break

            done, in_flight = await asyncio.wait(
                in_flight, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.cancelled():
                    result.failed += 1
                    self.log.error("Pool task was cancelled")
                    continue
                error = task.exception()
                if error is None:
                    result.succeeded += 1
                else:
                    result.failed += 1
                    result.errors.append(error)
                    self.log.error(f"Pool task failed: {error!r}")

        return result
