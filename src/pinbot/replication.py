# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/replication.py

"""
Replica counting.

Asks the network who provides each resolved item and records the provider
count and whether the local node is one of them.
"""

import logging
from datetime import datetime, timedelta, timezone

from pinbot.ipfs_api import IPFSAPIError
from pinbot.ledger import Ledger
from pinbot.pool import BoundedTaskPool
from pinbot.types import ProviderRecord, ReplicationReport, TrackedItem

logger = logging.getLogger(__name__)

DEFAULT_STALENESS = timedelta(hours=1)
DEFAULT_TIMEOUT = 60.0


def count_replicas(records: list[ProviderRecord], local_id: str) -> tuple[int, bool]:
    """Return (provider count, local node among providers)."""
    count = 0
    is_pinned = False
    for record in records:
        if not record.is_provider:
            continue
        count += 1
        if local_id in record.responses:
            is_pinned = True
    return count, is_pinned


class ReplicationMonitor:
    """Refresh replica counts of items whose last check is stale."""

    def __init__(
        self,
        node,
        ledger: Ledger,
        local_id: str,
        concurrency: int = 5,
        staleness: timedelta = DEFAULT_STALENESS,
        timeout: float = DEFAULT_TIMEOUT,
        log: logging.Logger = None,
    ):
        self.node = node
        self.ledger = ledger
        self.local_id = local_id
        self.concurrency = concurrency
        self.staleness = staleness
        self.timeout = timeout
        self.log = log or logger

    async def check(self, item: TrackedItem, now: datetime, report: ReplicationReport) -> None:
        """Check one item; a failed lookup leaves last_check untouched."""
        try:
            records = await self.node.find_providers(item.resolved_address, self.timeout)
        except IPFSAPIError as e:
            self.log.error(f"Failed to load IPFS item [{item.resolved_address}]: {e}")
            report.failed += 1
            return

        count, is_pinned = count_replicas(records, self.local_id)
        self.log.info(
            f"{item.resolved_address} - isPinned[{is_pinned}] pinCount[{count}]"
        )
        self.ledger.record_replication(item.item_id, count, is_pinned, now)
        report.updated += 1
        if is_pinned:
            report.pinned_locally += 1

    async def run(self, now: datetime = None) -> ReplicationReport:
        now = now or datetime.now(timezone.utc)
        items = self.ledger.query_due_for_replication_check(now, self.staleness)
        self.log.info(f"Updating pin counts for {len(items)} items.")
        report = ReplicationReport(checked=len(items))

        pool = BoundedTaskPool(
            (self.check(item, now, report) for item in items),
            self.concurrency,
            log=self.log,
        )
        await pool.run()
        return report
