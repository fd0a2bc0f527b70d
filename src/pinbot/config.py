# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/config.py

"""
pinbot Configuration Management

Reads TFC toml convention:
  /etc/tfc/common.toml  -- shared config (org name, ipfs endpoints)
  /etc/tfc/pinbot.toml  -- pinbot-specific config (budget, thresholds, ledger)

Deep merge: common.toml is base, pinbot.toml overrides at section level.
Every key has a default, so a nearly empty pinbot.toml is a valid config.
"""

import re
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional


DEFAULT_COMMON = Path("/etc/tfc/common.toml")
DEFAULT_CONFIG = Path("/etc/tfc/pinbot.toml")

DEFAULT_LIBRARY_URL = "https://api.alexandria.io/alexandria/v2/media/get/all"
DEFAULT_DISK = "10GB"

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

_SIZE_SUFFIXES = {
    "b": 1,
    "kb": 1024,
    "mb": 1024 ** 2,
    "gb": 1024 ** 3,
    "tb": 1024 ** 4,
    "pb": 1024 ** 5,
}


def parse_size(value) -> int:
    """Parse human-friendly size strings like ``10GB`` into byte counts.

    Multiples are binary (1KB == 1024 bytes). Integers pass through.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid size specification: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise ValueError("size value must be positive")
        return value

    text = (value or "").strip().lower().replace(",", "").replace("_", "")
    if not text:
        raise ValueError("size value cannot be empty")
    match = re.fullmatch(r"(?P<amount>\d+(?:\.\d+)?)\s*(?P<suffix>[kmgtp]?b?)", text)
    if not match:
        raise ValueError(f"invalid size specification: {value!r}")
    suffix = match.group("suffix") or "b"
    if not suffix.endswith("b"):
        suffix += "b"
    bytes_value = int(float(match.group("amount")) * _SIZE_SUFFIXES[suffix])
    if bytes_value <= 0:
        raise ValueError("size value must be positive")
    return bytes_value


@dataclass
class LoggingConfig:
    """Where and how verbosely to log."""
    level: str = "info"
    path: Optional[str] = None          # None means stderr

    def to_dict(self) -> dict:
        return {"level": self.level, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "info")).lower(),
            path=data.get("path"),
        )


@dataclass
class IPFSNodeConfig:
    """Connection to the local IPFS node's RPC API."""
    host: str = "localhost"
    port: int = 5001
    protocol: str = "http"

    @property
    def api_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}/api/v0"

    def to_dict(self) -> dict:
        return {"host": self.host, "port": self.port, "protocol": self.protocol}

    @classmethod
    def from_dict(cls, data: dict) -> "IPFSNodeConfig":
        if isinstance(data, str):
            # Simple format: just a hostname
            return cls(host=data)
        return cls(
            host=data.get("host", "localhost"),
            port=int(data.get("port", 5001)),
            protocol=data.get("protocol", "http"),
        )


@dataclass
class PinbotConfig:
    """Complete pinbot configuration."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ipfs: IPFSNodeConfig = field(default_factory=IPFSNodeConfig)
    database_path: str = ":memory:"
    library_url: str = DEFAULT_LIBRARY_URL
    disk_budget: int = field(default_factory=lambda: parse_size(DEFAULT_DISK))
    concurrency: int = 5
    min_pin_threshold: int = 1
    replication_check_interval: int = 3600   # seconds
    replica_timeout: float = 60.0
    size_timeout: float = 60.0
    pin_timeout: float = 600.0
    catalog_timeout: float = 60.0
    skip_addresses: list[str] = field(default_factory=list)

    @property
    def replication_staleness(self) -> timedelta:
        return timedelta(seconds=self.replication_check_interval)

    def validate(self) -> tuple[list[str], list[str]]:
        """
        Validate configuration, return (errors, warnings).
        Empty errors list means config is valid for a cycle.
        """
        errors = []
        warnings = []

        if self.concurrency < 1:
            errors.append(f"concurrency must be at least 1 (got {self.concurrency})")
        if self.disk_budget <= 0:
            errors.append("resource_limits.disk must be positive")
        if self.min_pin_threshold < 1:
            errors.append(
                f"min_pin_threshold must be at least 1 (got {self.min_pin_threshold})"
            )
        if self.logging.level not in LOG_LEVELS:
            errors.append(f"unknown logging level '{self.logging.level}'")
        for name in ("replica_timeout", "size_timeout", "pin_timeout", "catalog_timeout"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        # An in-memory ledger forgets everything between runs
        if self.database_path == ":memory:":
            warnings.append("database.path is ':memory:' (ledger is not persisted)")
        if self.concurrency > 50:
            warnings.append(f"concurrency {self.concurrency} may overload the node")
        if not self.library_url:
            warnings.append("no library.url configured (catalog refresh disabled)")

        return errors, warnings

    def to_dict(self) -> dict:
        return {
            "logging": self.logging.to_dict(),
            "ipfs": self.ipfs.to_dict(),
            "database_path": self.database_path,
            "library_url": self.library_url,
            "disk_budget": self.disk_budget,
            "concurrency": self.concurrency,
            "min_pin_threshold": self.min_pin_threshold,
            "replication_check_interval": self.replication_check_interval,
            "replica_timeout": self.replica_timeout,
            "size_timeout": self.size_timeout,
            "pin_timeout": self.pin_timeout,
            "catalog_timeout": self.catalog_timeout,
            "skip_addresses": list(self.skip_addresses),
        }


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base at section level.

    For top-level keys that are both dicts (TOML sections), merge their
    contents with override winning on key conflict.
    For non-dict values, override replaces base.
    """
    merged = dict(base)
    for key, val in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = {**merged[key], **val}
        else:
            merged[key] = val
    return merged


def config_from_dict(config: dict) -> PinbotConfig:
    """Build a PinbotConfig from merged toml sections.

    Raises:
        ValueError: If a value cannot be parsed (e.g. a bad disk size)
    """
    section = config.get("pinbot", {})
    limits = config.get("resource_limits", {})
    library = config.get("library", {})
    database = config.get("database", {})

    return PinbotConfig(
        logging=LoggingConfig.from_dict(config.get("logging", {})),
        ipfs=IPFSNodeConfig.from_dict(config.get("ipfs", {})),
        database_path=str(database.get("path", ":memory:")),
        library_url=library.get("url", DEFAULT_LIBRARY_URL),
        disk_budget=parse_size(limits.get("disk", DEFAULT_DISK)),
        concurrency=int(section.get("concurrency", 5)),
        min_pin_threshold=int(section.get("min_pin_threshold", 1)),
        replication_check_interval=int(section.get("replication_check_interval", 3600)),
        replica_timeout=float(section.get("replica_timeout", 60)),
        size_timeout=float(section.get("size_timeout", 60)),
        pin_timeout=float(section.get("pin_timeout", 600)),
        catalog_timeout=float(section.get("catalog_timeout", 60)),
        skip_addresses=list(section.get("skip_addresses", [])),
    )


def load_config(
    common_path: Path = None, config_path: Path = None
) -> PinbotConfig:
    """Load config from common.toml + pinbot.toml. Returns PinbotConfig.

    Args:
        common_path: Path to common.toml. Default: /etc/tfc/common.toml
        config_path: Path to pinbot.toml. Default: /etc/tfc/pinbot.toml

    Returns:
        PinbotConfig object

    Raises:
        FileNotFoundError: If pinbot.toml doesn't exist
        ValueError: If config files are invalid
    """
    common_file = common_path or DEFAULT_COMMON
    config_file = config_path or DEFAULT_CONFIG

    # Load common.toml (optional, may not exist on minimal installs)
    common = {}
    if common_file.exists():
        with open(common_file, "rb") as f:
            common = tomllib.load(f)

    # Load pinbot.toml (required)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_file, "rb") as f:
        specific = tomllib.load(f)

    return config_from_dict(_deep_merge(common, specific))
