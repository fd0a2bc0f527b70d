# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/operations.py

"""
pinbot Operations

High-level operations: one pipeline cycle and the ledger inspection helpers
the CLI wraps. A cycle runs ingestion, size resolution, replica counting and
admission in that order. Only startup failures (ledger or node) are fatal;
a failed catalog fetch skips ingestion and the other stages still run.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from pinbot.catalog import MetadataFetchError, fetch_catalog, parse_descriptors
from pinbot.config import PinbotConfig
from pinbot.ingest import ingest_descriptors
from pinbot.ipfs_api import IPFSAPIError, IPFSNode
from pinbot.ledger import Ledger
from pinbot.replication import ReplicationMonitor
from pinbot.resolver import SizeResolver
from pinbot.retention import RetentionPolicy
from pinbot.types import CycleReport, IngestResult, LedgerSummary, TrackedItem

logger = logging.getLogger(__name__)


class PinbotError(Exception):
    """Base exception for pinbot operations."""
    pass


class ConfigError(PinbotError):
    """Configuration is missing or invalid."""
    pass


class StartupError(PinbotError):
    """The ledger or the IPFS node could not be initialized."""
    pass


def open_ledger(config: PinbotConfig) -> Ledger:
    """Open the configured ledger, raising StartupError on failure."""
    try:
        return Ledger(config.database_path)
    except (sqlite3.Error, OSError, RuntimeError) as e:
        raise StartupError(f"Could not open ledger at {config.database_path}: {e}") from e


def _check_config(config: PinbotConfig) -> None:
    errors, warnings = config.validate()
    for w in warnings:
        logger.warning(f"Config: {w}")
    if errors:
        raise ConfigError("; ".join(errors))


async def refresh_catalog(
    config: PinbotConfig, ledger: Ledger, node, log: logging.Logger = None
) -> IngestResult:
    """
    Fetch the catalog and ingest it.

    Raises:
        MetadataFetchError: If the catalog could not be fetched
    """
    raw = await asyncio.to_thread(fetch_catalog, config.library_url, config.catalog_timeout)
    descriptors = parse_descriptors(raw)
    return ingest_descriptors(descriptors, ledger, node.validate_address, log=log)


async def run_cycle_async(
    config: PinbotConfig,
    ledger: Ledger,
    node,
    skip_catalog: bool = False,
    now: datetime = None,
    log: logging.Logger = None,
) -> CycleReport:
    """
    Run one full pipeline cycle against an open ledger and node.

    Args:
        config: PinbotConfig with limits and thresholds
        ledger: Open Ledger
        node: Async node capability (see IPFSNode)
        skip_catalog: Do not fetch the catalog, work from the ledger only
        now: Timestamp for replica checks (default: current time)
        log: Logger passed to every stage (default: this module's logger)

    Returns:
        CycleReport with per-stage counts

    Raises:
        StartupError: If the node's identity cannot be read
    """
    log = log or logger
    report = CycleReport(started_at=datetime.now(timezone.utc))

    try:
        report.local_id = await node.local_node_identity()
    except IPFSAPIError as e:
        raise StartupError(f"Could not read IPFS node identity: {e}") from e
    log.debug(f"Local node is {report.local_id}")

    # 1. Ingestion
    if skip_catalog:
        log.info("Skipping catalog refresh")
    elif not config.library_url:
        log.warning("No library URL configured, skipping catalog refresh")
    else:
        try:
            report.ingest = await refresh_catalog(config, ledger, node, log=log)
        except MetadataFetchError as e:
            log.error(f"Catalog refresh failed, continuing with ledger state: {e}")
            report.catalog_error = str(e)

    # 2. Size resolution
    resolver = SizeResolver(
        node,
        ledger,
        concurrency=config.concurrency,
        skip_addresses=config.skip_addresses,
        log=log,
    )
    report.sizes = await resolver.run()

    # 3. Replica counts
    monitor = ReplicationMonitor(
        node,
        ledger,
        report.local_id,
        concurrency=config.concurrency,
        staleness=config.replication_staleness,
        timeout=config.replica_timeout,
        log=log,
    )
    report.replication = await monitor.run(now=now)

    # 4. Admission
    policy = RetentionPolicy(
        node,
        ledger,
        disk_budget=config.disk_budget,
        min_replicas=config.min_pin_threshold,
        concurrency=config.concurrency,
        log=log,
    )
    report.retention = await policy.run()

    report.finished_at = datetime.now(timezone.utc)
    return report


def run_cycle(
    config: PinbotConfig,
    ledger: Optional[Ledger] = None,
    node=None,
    skip_catalog: bool = False,
) -> CycleReport:
    """
    Run one cycle, opening the configured ledger and node if not given.

    Raises:
        ConfigError: If the configuration does not validate
        StartupError: If the ledger or node cannot be initialized
    """
    _check_config(config)
    node = node or IPFSNode.from_config(config)

    if ledger is not None:
        return asyncio.run(run_cycle_async(config, ledger, node, skip_catalog))

    with open_ledger(config) as owned:
        return asyncio.run(run_cycle_async(config, owned, node, skip_catalog))


def status(config: PinbotConfig) -> LedgerSummary:
    """Summary counts of the configured ledger."""
    with open_ledger(config) as ledger:
        return ledger.summary()


def ls(
    config: PinbotConfig,
    pinned: bool = False,
    candidates: bool = False,
) -> list[TrackedItem]:
    """
    List tracked items.

    Args:
        config: PinbotConfig (ledger location, replica threshold)
        pinned: Only items pinned locally
        candidates: Only admission candidates, in admission order
    """
    with open_ledger(config) as ledger:
        if pinned:
            return ledger.query_pinned()
        if candidates:
            return ledger.query_sorted_candidates(config.min_pin_threshold)
        return ledger.all_items()


def reset_failed(config: PinbotConfig) -> int:
    """Clear size failure markers so the next cycle retries them."""
    with open_ledger(config) as ledger:
        count = ledger.reset_failed_sizes()
    logger.info(f"Cleared size failure marker on {count} items")
    return count
