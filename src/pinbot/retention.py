# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/retention.py

"""
Retention policy: greedy admission under a disk budget.

Already pinned items set the baseline. Candidates below the replica
threshold are admitted least-replicated first while they fit. Each
admitted size is added to the running total when the pin is dispatched,
before the pin call suspends, so pins in flight together cannot jointly
overshoot the budget. A failed pin keeps its share of the total until the
next cycle recomputes the baseline.

There is no eviction: budget pressure only throttles admissions.
"""

import logging

from pinbot.ipfs_api import IPFSAPIError
from pinbot.ledger import Ledger
from pinbot.pool import BoundedTaskPool
from pinbot.types import RetentionReport, TrackedItem

logger = logging.getLogger(__name__)


class RetentionPolicy:
    """Admit under-replicated items into the local pin set."""

    def __init__(
        self,
        node,
        ledger: Ledger,
        disk_budget: int,
        min_replicas: int = 1,
        concurrency: int = 5,
        log: logging.Logger = None,
    ):
        """
        Args:
            node: Object with async add_pin(address)
            ledger: Ledger holding candidates and pinned items
            disk_budget: Bytes the local pin set may occupy
            min_replicas: Items with fewer replicas than this are candidates
            concurrency: Maximum pins in flight
            log: Logger (default: this module's logger)
        """
        self.node = node
        self.ledger = ledger
        self.disk_budget = disk_budget
        self.min_replicas = min_replicas
        self.concurrency = concurrency
        self.log = log or logger

    async def pin(self, item: TrackedItem, report: RetentionReport) -> None:
        self.log.info(f"Pinning {item.resolved_address} for {item.size_bytes} bytes")
        try:
            await self.node.add_pin(item.resolved_address)
        except IPFSAPIError as e:
            self.log.error(f"Failed to pin [{item.resolved_address}] ({item.item_id}): {e}")
            report.failed += 1
            return
        self.ledger.mark_pinned(item.item_id)
        report.pinned += 1
        self.log.info(f"{item.resolved_address} pinned {item.size_bytes} bytes")

    def admissions(self, candidates: list[TrackedItem], report: RetentionReport):
        """Yield pin coroutines for candidates that fit, in priority order."""
        dispatched_addresses = set()
        for item in candidates:
            if item.resolved_address in dispatched_addresses:
                self.log.debug(
                    f"{item.item_id} shares {item.resolved_address} with an item "
                    f"already pinned this cycle"
                )
                continue
            if report.projected_bytes + item.size_bytes >= self.disk_budget:
                self.log.debug(
                    f"{item.item_id} ({item.size_bytes} bytes) does not fit, "
                    f"{report.projected_bytes}/{self.disk_budget} bytes committed"
                )
                report.skipped_for_space += 1
                continue

            # Counted before the pin is started
            report.projected_bytes += item.size_bytes
            report.dispatched += 1
            dispatched_addresses.add(item.resolved_address)
            yield self.pin(item, report)

    async def run(self) -> RetentionReport:
        pinned = self.ledger.query_pinned()
        self.log.info(f"{len(pinned)} media pieces are pinned.")
        baseline = sum(item.size_bytes for item in pinned if (item.size_bytes or 0) > 0)
        self.log.info(f"Disk utilization {baseline} bytes")

        candidates = self.ledger.query_sorted_candidates(self.min_replicas)
        self.log.info(f"Possibly pinning {len(candidates)} media pieces.")

        report = RetentionReport(
            baseline_bytes=baseline,
            budget_bytes=self.disk_budget,
            candidates=len(candidates),
            projected_bytes=baseline,
        )
        pool = BoundedTaskPool(
            self.admissions(candidates, report),
            self.concurrency,
            log=self.log,
        )
        await pool.run()
        self.log.info(
            f"Pinned {report.pinned} of {report.dispatched} admitted items, "
            f"{report.projected_bytes}/{self.disk_budget} bytes committed"
        )
        return report
