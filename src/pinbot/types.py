# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/types.py

"""
pinbot Type Definitions

Dataclasses for ledger rows, node responses, catalog descriptors and
per-stage reports, with serialization support.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union
import json


# Stored in size_bytes when resolution failed; the resolver does not retry it
SIZE_FAILED = -1

# findprovs record type for "provider" answers
PROVIDER_PEER_TYPE = 4


def _ts_to_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class TrackedItem:
    """One addressable path known to the ledger."""
    item_id: str                            # Bare address or "root/relative/name"
    root_address: str                       # Container the item was found under
    resolved_address: Optional[str] = None  # Canonical address, once resolved
    size_bytes: Optional[int] = None        # SIZE_FAILED if resolution failed
    replica_count: int = 0                  # Providers seen on the network
    is_pinned: bool = False                 # Local node holds a pin
    last_check: Optional[datetime] = None   # Last successful replica lookup
    discovered_at: Optional[datetime] = None

    @property
    def size_failed(self) -> bool:
        return self.size_bytes == SIZE_FAILED

    @property
    def lookup_address(self) -> str:
        """Address to hand to the node: resolved if known, else the path."""
        return self.resolved_address or self.item_id

    @property
    def parent_path(self) -> str:
        """Path whose links contain this item (the item itself at root level)."""
        if "/" not in self.item_id:
            return self.item_id
        return self.item_id.rsplit("/", 1)[0]

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "root_address": self.root_address,
            "resolved_address": self.resolved_address,
            "size_bytes": self.size_bytes,
            "replica_count": self.replica_count,
            "is_pinned": self.is_pinned,
            "last_check": _iso(self.last_check),
            "discovered_at": _iso(self.discovered_at),
        }

    @classmethod
    def from_row(cls, row) -> "TrackedItem":
        """Create from a sqlite3.Row of the items table."""
        return cls(
            item_id=row["item_id"],
            root_address=row["root_address"],
            resolved_address=row["resolved_address"],
            size_bytes=row["size_bytes"],
            replica_count=row["replica_count"] or 0,
            is_pinned=bool(row["is_pinned"]),
            last_check=_ts_to_datetime(row["last_check"]),
            discovered_at=_ts_to_datetime(row["discovered_at"]),
        )


# =============================================================================
# Node responses
# =============================================================================

@dataclass
class ObjectLink:
    """A named link inside a container object."""
    name: str
    address: str
    size: int

    @classmethod
    def from_ipfs_link(cls, link: dict) -> "ObjectLink":
        # Kubo ls returns: {"Name": "poster.jpg", "Hash": "Qm...", "Size": 123, "Type": 2}
        return cls(
            name=link.get("Name", ""),
            address=link.get("Hash", ""),
            size=link.get("Size", 0),
        )


@dataclass
class ObjectInfo:
    """Metadata of a resolved object."""
    is_leaf: bool
    cumulative_size: int
    links: list[ObjectLink] = field(default_factory=list)


@dataclass
class ProviderRecord:
    """One record of a findprovs answer."""
    peer_type: int
    peer_id: str
    responses: list[str] = field(default_factory=list)   # Peer IDs in Responses

    @property
    def is_provider(self) -> bool:
        return self.peer_type == PROVIDER_PEER_TYPE

    @classmethod
    def from_ipfs_record(cls, record: dict) -> "ProviderRecord":
        # Kubo returns: {"ID": "", "Type": 4, "Responses": [{"ID": "12D3...", "Addrs": [...]}]}
        responses = record.get("Responses") or []
        return cls(
            peer_type=record.get("Type", 0),
            peer_id=record.get("ID", ""),
            responses=[r.get("ID", "") for r in responses],
        )


# =============================================================================
# Catalog descriptors
# =============================================================================

# Alexandria extra-info fields ingested besides the filename
ALEXANDRIA_ROLE_FIELDS = (
    "posterFrame",
    "coverArt",
    "poster",
    "trailer",
    "track01",
    "track02",
)

# filename value meaning "every field is an address of its own"
STANDALONE_FILENAME = "none"


def _clean(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


@dataclass
class AlexandriaDescriptor:
    """media-data.alexandria-media descriptor."""
    filename: str
    dht_hash: str
    fields: dict[str, str] = field(default_factory=dict)  # role -> value, non-empty only

    @property
    def standalone(self) -> bool:
        return self.filename == STANDALONE_FILENAME

    @classmethod
    def from_catalog(cls, item: dict) -> "AlexandriaDescriptor":
        extra = item["media-data"]["alexandria-media"]["info"]["extra-info"]
        fields = {}
        for role in ALEXANDRIA_ROLE_FIELDS:
            value = _clean(extra.get(role))
            if value:
                fields[role] = value
        return cls(
            filename=_clean(extra.get("filename")),
            dht_hash=_clean(extra.get("DHT Hash")),
            fields=fields,
        )


@dataclass
class Oip041Descriptor:
    """oip-041 artifact descriptor."""
    location: str
    filenames: Optional[list[str]]       # None when the artifact lists no files
    title: str = ""
    timestamp: Optional[int] = None

    @classmethod
    def from_catalog(cls, item: dict) -> "Oip041Descriptor":
        artifact = item["oip-041"]["artifact"]
        storage = artifact.get("storage") or {}
        info = artifact.get("info") or {}
        files = storage.get("files")
        filenames = None
        if files is not None:
            filenames = [_clean(f.get("fname")) for f in files if isinstance(f, dict)]
        return cls(
            location=_clean(storage.get("location")),
            filenames=filenames,
            title=info.get("title") or "",
            timestamp=artifact.get("timestamp"),
        )


Descriptor = Union[AlexandriaDescriptor, Oip041Descriptor]


# =============================================================================
# Stage reports
# =============================================================================

@dataclass
class IngestResult:
    """Result of ingesting catalog descriptors."""
    descriptors: int = 0
    created: int = 0
    duplicates: int = 0
    skipped: int = 0                     # Descriptors or fields refused

    def to_dict(self) -> dict:
        return {
            "descriptors": self.descriptors,
            "created": self.created,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
        }


@dataclass
class SizeReport:
    """Result of one size resolution pass."""
    checked: int = 0
    resolved: int = 0
    failed: int = 0
    skipped: int = 0                     # Known-dead addresses

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "resolved": self.resolved,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class ReplicationReport:
    """Result of one replica count refresh."""
    checked: int = 0
    updated: int = 0
    failed: int = 0
    pinned_locally: int = 0

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "updated": self.updated,
            "failed": self.failed,
            "pinned_locally": self.pinned_locally,
        }


@dataclass
class RetentionReport:
    """Result of one admission pass."""
    baseline_bytes: int = 0              # Pinned before this pass
    budget_bytes: int = 0
    candidates: int = 0
    dispatched: int = 0
    pinned: int = 0
    failed: int = 0
    skipped_for_space: int = 0
    projected_bytes: int = 0             # Baseline plus everything dispatched

    def to_dict(self) -> dict:
        return {
            "baseline_bytes": self.baseline_bytes,
            "budget_bytes": self.budget_bytes,
            "candidates": self.candidates,
            "dispatched": self.dispatched,
            "pinned": self.pinned,
            "failed": self.failed,
            "skipped_for_space": self.skipped_for_space,
            "projected_bytes": self.projected_bytes,
        }


@dataclass
class LedgerSummary:
    """Counts over the whole ledger."""
    total: int
    resolved: int
    missing_size: int
    size_failed: int
    pinned: int
    pinned_bytes: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "resolved": self.resolved,
            "missing_size": self.missing_size,
            "size_failed": self.size_failed,
            "pinned": self.pinned,
            "pinned_bytes": self.pinned_bytes,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class CycleReport:
    """Result of one full pipeline cycle."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    local_id: Optional[str] = None
    catalog_error: Optional[str] = None  # Set when ingestion was aborted
    ingest: Optional[IngestResult] = None
    sizes: SizeReport = field(default_factory=SizeReport)
    replication: ReplicationReport = field(default_factory=ReplicationReport)
    retention: RetentionReport = field(default_factory=RetentionReport)

    @property
    def ok(self) -> bool:
        """True if no stage reported a failure."""
        return (
            self.catalog_error is None
            and self.sizes.failed == 0
            and self.replication.failed == 0
            and self.retention.failed == 0
        )

    def to_dict(self) -> dict:
        return {
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "local_id": self.local_id,
            "catalog_error": self.catalog_error,
            "ingest": self.ingest.to_dict() if self.ingest else None,
            "sizes": self.sizes.to_dict(),
            "replication": self.replication.to_dict(),
            "retention": self.retention.to_dict(),
            "ok": self.ok,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
