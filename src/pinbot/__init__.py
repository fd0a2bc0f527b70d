# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/__init__.py

"""
pinbot Library

Keeps a disk-bounded local replica of under-replicated media published to
IPFS: tracks catalog items in a ledger, measures their size and replica
count, and pins the least replicated ones that fit in the disk budget.

Basic usage:
    from pinbot import load_config, run_cycle

    config = load_config()
    report = run_cycle(config)
    print(report.to_json())

For more control:
    from pinbot.ledger import Ledger
    from pinbot.ipfs_api import IPFSNode
    from pinbot.operations import run_cycle_async
"""

# Config
from pinbot.config import (
    IPFSNodeConfig,
    LoggingConfig,
    PinbotConfig,
    load_config,
    parse_size,
)

# Types
from pinbot.types import (
    SIZE_FAILED,
    AlexandriaDescriptor,
    CycleReport,
    LedgerSummary,
    Oip041Descriptor,
    TrackedItem,
)

# Engine
from pinbot.ledger import Ledger
from pinbot.pool import BoundedTaskPool, PoolResult

# Errors
from pinbot.catalog import MetadataFetchError
from pinbot.ipfs_api import (
    IPFSAPIError,
    InvalidAddressError,
    NetworkError,
    PinError,
)

# Operations
from pinbot.operations import (
    ConfigError,
    PinbotError,
    StartupError,
    ls,
    reset_failed,
    run_cycle,
    status,
)

__all__ = [
    # Config
    "IPFSNodeConfig",
    "LoggingConfig",
    "PinbotConfig",
    "load_config",
    "parse_size",
    # Types
    "SIZE_FAILED",
    "AlexandriaDescriptor",
    "CycleReport",
    "LedgerSummary",
    "Oip041Descriptor",
    "TrackedItem",
    # Engine
    "Ledger",
    "BoundedTaskPool",
    "PoolResult",
    # Errors
    "ConfigError",
    "IPFSAPIError",
    "InvalidAddressError",
    "MetadataFetchError",
    "NetworkError",
    "PinError",
    "PinbotError",
    "StartupError",
    # Operations
    "ls",
    "reset_failed",
    "run_cycle",
    "status",
]
