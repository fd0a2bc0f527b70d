# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/ingest.py

"""Turn catalog descriptors into ledger rows."""

import logging
from typing import Callable, Iterable

from pinbot.ipfs_api import InvalidAddressError
from pinbot.ledger import Ledger
from pinbot.types import (
    AlexandriaDescriptor,
    Descriptor,
    IngestResult,
    Oip041Descriptor,
)

logger = logging.getLogger(__name__)


class _Ingestor:
    def __init__(self, ledger: Ledger, validate_address: Callable[[str], str], log: logging.Logger):
        self.ledger = ledger
        self.validate_address = validate_address
        self.log = log
        self.result = IngestResult()

    def _valid(self, value: str):
        """Cleaned address, or None if the value is not an address."""
        try:
            return self.validate_address(value)
        except InvalidAddressError:
            return None

    def _add(self, item_id: str, root_address: str) -> None:
        # Roots are bare addresses; a path here would nest items under items
        if "/" in root_address:
            self.log.warning(f"Refusing {item_id}: root {root_address} is a path")
            self.result.skipped += 1
            return
        if self.ledger.upsert_if_absent(item_id, root_address):
            self.result.created += 1
            self.log.debug(f"Tracking {item_id}")
        else:
            self.result.duplicates += 1

    def alexandria(self, desc: AlexandriaDescriptor) -> None:
        if not desc.filename:
            self.log.debug(f"Skipping descriptor without filename (DHT Hash '{desc.dht_hash}')")
            self.result.skipped += 1
            return

        if desc.standalone:
            # Each field is an address of its own
            for role, value in [("DHT Hash", desc.dht_hash), *desc.fields.items()]:
                if not value:
                    continue
                address = self._valid(value)
                if address is None:
                    self.log.warning(f"Invalid {role} address '{value}', skipping field")
                    self.result.skipped += 1
                    continue
                self._add(address, address)
            return

        root = self._valid(desc.dht_hash)
        if root is None:
            self.log.warning(
                f"Invalid DHT Hash '{desc.dht_hash}' for '{desc.filename}', skipping descriptor"
            )
            self.result.skipped += 1
            return

        self._add(f"{root}/{desc.filename}", root)
        for value in desc.fields.values():
            self._add(f"{root}/{value}", root)

    def oip041(self, desc: Oip041Descriptor) -> None:
        # File entries carry their own names, so an unvalidated root is
        # reported but still used as the prefix
        root = self._valid(desc.location)
        if root is None:
            self.log.warning(
                f"Invalid DHT Hash found. title:`{desc.title}` - dht:`{desc.location}`"
            )
            root = desc.location

        if desc.filenames is None:
            self.log.critical(
                f"No file information on artifact timestamped ({desc.timestamp})"
            )
            self.result.skipped += 1
            return

        if not root:
            self.log.warning(f"Artifact `{desc.title}` has no storage location, skipping")
            self.result.skipped += 1
            return

        for fname in desc.filenames:
            if fname:
                self._add(f"{root}/{fname}", root)


def ingest_descriptors(
    descriptors: Iterable[Descriptor],
    ledger: Ledger,
    validate_address: Callable[[str], str],
    log: logging.Logger = None,
) -> IngestResult:
    """
    Record every item a batch of descriptors names.

    Args:
        descriptors: Parsed catalog descriptors
        ledger: Ledger to insert into (duplicates are ignored)
        validate_address: Returns the cleaned address or raises InvalidAddressError
        log: Logger (default: this module's logger)

    Returns:
        IngestResult with created/duplicate/skipped counts
    """
    ingestor = _Ingestor(ledger, validate_address, log or logger)
    for desc in descriptors:
        ingestor.result.descriptors += 1
        if isinstance(desc, AlexandriaDescriptor):
            ingestor.alexandria(desc)
        elif isinstance(desc, Oip041Descriptor):
            ingestor.oip041(desc)
        else:
            raise TypeError(f"unknown descriptor type {type(desc).__name__}")

    result = ingestor.result
    (log or logger).info(
        f"Ingested {result.descriptors} descriptors: {result.created} new items, "
        f"{result.duplicates} already tracked, {result.skipped} skipped"
    )
    return result
