# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_retention.py

"""Tests for greedy admission under the disk budget."""

import asyncio
from datetime import datetime, timezone

from pinbot.retention import RetentionPolicy

from conftest import FakeNode


NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def candidate(ledger, item_id, size, replicas=0, address=None):
    ledger.upsert_if_absent(item_id, item_id)
    ledger.record_size(item_id, size, address or f"{item_id}-cid")
    ledger.record_replication(item_id, replicas, False, NOW)


def pinned(ledger, item_id, size):
    candidate(ledger, item_id, size)
    ledger.mark_pinned(item_id)


def run(policy):
    return asyncio.run(policy.run())


class TestOrder:
    def test_least_replicated_first_then_item_id(self, ledger):
        candidate(ledger, "QmD", 1, replicas=3)
        candidate(ledger, "QmB", 1, replicas=1)
        candidate(ledger, "QmA", 1, replicas=1)
        candidate(ledger, "QmC", 1, replicas=2)
        node = FakeNode()

        run(RetentionPolicy(node, ledger, disk_budget=1000, min_replicas=5, concurrency=1))

        assert node.pinned == ["QmA-cid", "QmB-cid", "QmC-cid", "QmD-cid"]

    def test_healthy_items_not_pinned(self, ledger):
        candidate(ledger, "QmLow", 1, replicas=0)
        candidate(ledger, "QmHigh", 1, replicas=2)
        node = FakeNode()

        report = run(RetentionPolicy(node, ledger, disk_budget=1000, min_replicas=2))

        assert node.pinned == ["QmLow-cid"]
        assert report.candidates == 1


class TestBudget:
    def test_item_exactly_filling_budget_refused(self, ledger):
        candidate(ledger, "QmA", 100)
        node = FakeNode()

        report = run(RetentionPolicy(node, ledger, disk_budget=100))

        assert node.pinned == []
        assert report.skipped_for_space == 1

    def test_item_just_under_budget_admitted(self, ledger):
        candidate(ledger, "QmA", 99)
        node = FakeNode()

        report = run(RetentionPolicy(node, ledger, disk_budget=100))

        assert node.pinned == ["QmA-cid"]
        assert report.projected_bytes == 99

    def test_baseline_counts_pinned_items(self, ledger):
        pinned(ledger, "QmOld", 60)
        candidate(ledger, "QmBig", 40)
        candidate(ledger, "QmSmall", 39)
        node = FakeNode()

        report = run(RetentionPolicy(node, ledger, disk_budget=100))

        assert report.baseline_bytes == 60
        assert node.pinned == ["QmSmall-cid"]
        assert report.skipped_for_space == 1

    def test_smaller_items_after_a_misfit_still_admitted(self, ledger):
        candidate(ledger, "QmA", 70)
        candidate(ledger, "QmB", 50)
        candidate(ledger, "QmC", 20)
        node = FakeNode()

        run(RetentionPolicy(node, ledger, disk_budget=100, concurrency=1))

        assert node.pinned == ["QmA-cid", "QmC-cid"]

    def test_concurrent_pins_never_overshoot(self, ledger):
        for n in range(10):
            candidate(ledger, f"Qm{n:02d}", 40)
        node = FakeNode(delay=0.02)

        report = run(RetentionPolicy(node, ledger, disk_budget=100, concurrency=5))

        assert len(node.pinned) == 2
        assert report.projected_bytes == 80
        assert report.skipped_for_space == 8
        pinned_bytes = sum(i.size_bytes for i in ledger.query_pinned())
        assert pinned_bytes < 100

    def test_pins_bounded(self, ledger):
        for n in range(8):
            candidate(ledger, f"Qm{n:02d}", 1)
        node = FakeNode(delay=0.01)

        run(RetentionPolicy(node, ledger, disk_budget=1000, concurrency=2))

        assert node.max_in_flight == 2
        assert len(node.pinned) == 8


class TestOutcomes:
    def test_success_marks_pinned_and_adds_replica(self, ledger):
        candidate(ledger, "QmA", 10, replicas=0)

        report = run(RetentionPolicy(FakeNode(), ledger, disk_budget=1000))

        item = ledger.get("QmA")
        assert item.is_pinned is True
        assert item.replica_count == 1
        assert report.pinned == 1

    def test_failed_pin_keeps_budget_share(self, ledger):
        candidate(ledger, "QmA", 50)
        candidate(ledger, "QmB", 40)
        candidate(ledger, "QmC", 20)
        node = FakeNode(pin_failures={"QmA-cid"})

        report = run(RetentionPolicy(node, ledger, disk_budget=100, concurrency=1))

        assert node.pinned == ["QmA-cid", "QmB-cid"]
        assert ledger.get("QmA").is_pinned is False
        assert ledger.get("QmB").is_pinned is True
        assert report.failed == 1
        assert report.pinned == 1
        assert report.projected_bytes == 90
        assert report.skipped_for_space == 1

    def test_shared_resolved_address_pinned_once(self, ledger):
        candidate(ledger, "QmRoot/a.jpg", 10, address="QmSame")
        candidate(ledger, "QmRoot/b.jpg", 10, address="QmSame")
        node = FakeNode()

        report = run(RetentionPolicy(node, ledger, disk_budget=1000))

        assert node.pinned == ["QmSame"]
        assert report.dispatched == 1
        assert report.projected_bytes == 10

    def test_empty_ledger(self, ledger):
        report = run(RetentionPolicy(FakeNode(), ledger, disk_budget=1000))
        assert report.candidates == 0
        assert report.dispatched == 0
