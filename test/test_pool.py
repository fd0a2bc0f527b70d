# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_pool.py

"""Tests for the bounded task pool."""

import asyncio

import pytest

from pinbot.pool import BoundedTaskPool


class Tracker:
    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = []
        self.finished = []

    async def work(self, n, delay=0.01, fail=False):
        self.started.append(n)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(delay)
            if fail:
                raise RuntimeError(f"task {n} failed")
        finally:
            self.in_flight -= 1
        self.finished.append(n)


class TestConstruction:
    def test_zero_concurrency_rejected(self):
        with pytest.raises(ValueError, match="positive"):
            BoundedTaskPool(iter([]), 0)

    def test_negative_concurrency_rejected(self):
        with pytest.raises(ValueError):
            BoundedTaskPool(iter([]), -3)


class TestRun:
    def test_empty_producer(self):
        result = asyncio.run(BoundedTaskPool(iter([]), 5).run())
        assert result.started == 0
        assert result.succeeded == 0
        assert result.failed == 0

    def test_never_exceeds_limit(self):
        tracker = Tracker()
        pool = BoundedTaskPool((tracker.work(n) for n in range(20)), 3)
        result = asyncio.run(pool.run())
        assert result.started == 20
        assert result.succeeded == 20
        assert tracker.max_in_flight == 3

    def test_fewer_tasks_than_limit(self):
        tracker = Tracker()
        pool = BoundedTaskPool((tracker.work(n) for n in range(2)), 10)
        result = asyncio.run(pool.run())
        assert result.succeeded == 2
        assert tracker.max_in_flight == 2

    def test_started_in_producer_order(self):
        tracker = Tracker()
        # Later tasks are faster, so completion order differs from start order
        delays = [0.05, 0.04, 0.03, 0.02, 0.01, 0.0]
        pool = BoundedTaskPool(
            (tracker.work(n, delay=d) for n, d in enumerate(delays)), 2
        )
        asyncio.run(pool.run())
        assert tracker.started == [0, 1, 2, 3, 4, 5]
        assert sorted(tracker.finished) == [0, 1, 2, 3, 4, 5]

    def test_failures_do_not_abort_siblings(self):
        tracker = Tracker()
        pool = BoundedTaskPool(
            (tracker.work(n, fail=(n % 3 == 0)) for n in range(9)), 2
        )
        result = asyncio.run(pool.run())
        assert result.started == 9
        assert result.failed == 3
        assert result.succeeded == 6
        assert len(result.errors) == 3
        assert all(isinstance(e, RuntimeError) for e in result.errors)
        assert sorted(tracker.finished) == [1, 2, 4, 5, 7, 8]

    def test_producer_advanced_lazily(self):
        """The producer is only pulled when a slot is free."""
        pulled = []
        tracker = Tracker()

        def producer():
            for n in range(6):
                pulled.append(n)
                # Never more than limit pulled ahead of what has finished
                assert len(pulled) - len(tracker.finished) <= 2
                yield tracker.work(n)

        result = asyncio.run(BoundedTaskPool(producer(), 2).run())
        assert result.succeeded == 6
        assert pulled == [0, 1, 2, 3, 4, 5]

    def test_accepts_list_of_coroutines_lazily_started(self):
        tracker = Tracker()

        async def main():
            return await BoundedTaskPool([tracker.work(n) for n in range(4)], 1).run()

        result = asyncio.run(main())
        assert result.succeeded == 4
        assert tracker.max_in_flight == 1
        assert tracker.started == [0, 1, 2, 3]
