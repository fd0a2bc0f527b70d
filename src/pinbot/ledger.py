# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/ledger.py

"""
Tracking ledger: one sqlite table of known content items.

Every query and mutation commits on its own; there are no multi-statement
transactions. The ledger is only touched from the event loop thread, and
each pool task mutates only its own row.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from pinbot.types import SIZE_FAILED, LedgerSummary, TrackedItem

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    item_id TEXT PRIMARY KEY,
    root_address TEXT NOT NULL,
    resolved_address TEXT,
    size_bytes INTEGER,
    replica_count INTEGER NOT NULL DEFAULT 0,
    is_pinned INTEGER NOT NULL DEFAULT 0,
    last_check REAL,
    discovered_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_size ON items(size_bytes);
CREATE INDEX IF NOT EXISTS idx_items_check ON items(resolved_address, last_check);
CREATE INDEX IF NOT EXISTS idx_items_candidates
    ON items(is_pinned, replica_count, item_id);
CREATE INDEX IF NOT EXISTS idx_items_root ON items(root_address);
"""


def _ts(value: datetime) -> float:
    return value.timestamp()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Ledger:
    """Durable table of tracked items.

    Usage::

        with Ledger("/var/lib/pinbot/pinbot.db") as ledger:
            ledger.upsert_if_absent("QmRoot/movie.mp4", "QmRoot")
            for item in ledger.query_missing_size():
                ...
    """

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: autocommit, each statement is its own transaction
        self.conn = sqlite3.connect(self.path, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create the schema if needed."""
        self.conn.executescript(SCHEMA)
        version = self.conn.execute("PRAGMA user_version").fetchone()[0]
        if version == 0:
            self.conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        elif version > SCHEMA_VERSION:
            raise RuntimeError(
                f"Ledger {self.path} has schema version {version}, "
                f"this pinbot understands up to {SCHEMA_VERSION}"
            )
        logger.debug("Ledger opened at %s", self.path)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Ledger":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _items(self, sql: str, params=()) -> list[TrackedItem]:
        rows = self.conn.execute(sql, params).fetchall()
        return [TrackedItem.from_row(r) for r in rows]

    # ---------- Insertion ----------

    def upsert_if_absent(self, item_id: str, root_address: str) -> bool:
        """Insert a new item unless item_id is already known.

        Returns True if a row was created, False for a duplicate.
        """
        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO items (item_id, root_address, discovered_at) "
            "VALUES (?, ?, ?)",
            (item_id, root_address, _ts(_now())),
        )
        return cursor.rowcount == 1

    # ---------- Queries ----------

    def get(self, item_id: str) -> Optional[TrackedItem]:
        row = self.conn.execute(
            "SELECT * FROM items WHERE item_id = ?", (item_id,)
        ).fetchone()
        return TrackedItem.from_row(row) if row else None

    def all_items(self) -> list[TrackedItem]:
        return self._items("SELECT * FROM items ORDER BY item_id")

    def query_missing_size(self) -> list[TrackedItem]:
        """Items whose size was never resolved (failed ones are excluded)."""
        return self._items(
            "SELECT * FROM items WHERE size_bytes IS NULL ORDER BY item_id"
        )

    def query_due_for_replication_check(
        self, now: datetime, staleness: timedelta
    ) -> list[TrackedItem]:
        """Resolved items never checked, or last checked before now - staleness."""
        cutoff = _ts(now - staleness)
        return self._items(
            "SELECT * FROM items WHERE resolved_address IS NOT NULL "
            "AND (last_check IS NULL OR last_check < ?) ORDER BY item_id",
            (cutoff,),
        )

    def query_sorted_candidates(self, min_replicas: int) -> list[TrackedItem]:
        """Unpinned items of known size below the replica threshold.

        Ordered by (replica_count, item_id): least replicated first.
        """
        return self._items(
            "SELECT * FROM items WHERE size_bytes > 0 AND is_pinned = 0 "
            "AND replica_count < ? ORDER BY replica_count ASC, item_id ASC",
            (min_replicas,),
        )

    def query_pinned(self) -> list[TrackedItem]:
        return self._items("SELECT * FROM items WHERE is_pinned = 1 ORDER BY item_id")

    def summary(self) -> LedgerSummary:
        row = self.conn.execute(
            """SELECT
                   COUNT(*) AS total,
                   COALESCE(SUM(resolved_address IS NOT NULL), 0) AS resolved,
                   COALESCE(SUM(size_bytes IS NULL), 0) AS missing_size,
                   COALESCE(SUM(size_bytes = ?), 0) AS size_failed,
                   COALESCE(SUM(is_pinned = 1), 0) AS pinned,
                   COALESCE(SUM(CASE WHEN is_pinned = 1 AND size_bytes > 0
                                     THEN size_bytes ELSE 0 END), 0) AS pinned_bytes
               FROM items""",
            (SIZE_FAILED,),
        ).fetchone()
        return LedgerSummary(
            total=row["total"],
            resolved=row["resolved"],
            missing_size=row["missing_size"],
            size_failed=row["size_failed"],
            pinned=row["pinned"],
            pinned_bytes=row["pinned_bytes"],
        )

    # ---------- Mutations ----------

    def record_size(self, item_id: str, size_bytes: int, resolved_address: str) -> None:
        self.conn.execute(
            "UPDATE items SET size_bytes = ?, resolved_address = ? WHERE item_id = ?",
            (size_bytes, resolved_address, item_id),
        )

    def mark_size_failed(self, item_id: str) -> None:
        self.conn.execute(
            "UPDATE items SET size_bytes = ? WHERE item_id = ?",
            (SIZE_FAILED, item_id),
        )

    def reset_failed_sizes(self) -> int:
        """Clear the failure sentinel so the resolver retries those items."""
        cursor = self.conn.execute(
            "UPDATE items SET size_bytes = NULL WHERE size_bytes = ?", (SIZE_FAILED,)
        )
        return cursor.rowcount

    def record_replication(
        self, item_id: str, replica_count: int, is_pinned: bool, checked_at: datetime
    ) -> None:
        self.conn.execute(
            "UPDATE items SET replica_count = ?, is_pinned = ?, last_check = ? "
            "WHERE item_id = ?",
            (replica_count, int(is_pinned), _ts(checked_at), item_id),
        )

    def mark_pinned(self, item_id: str) -> None:
        """Record a successful local pin; the local node is one more replica."""
        self.conn.execute(
            "UPDATE items SET is_pinned = 1, replica_count = replica_count + 1 "
            "WHERE item_id = ?",
            (item_id,),
        )
