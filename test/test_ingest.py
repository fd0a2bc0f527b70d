# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_ingest.py

"""Tests for turning catalog descriptors into ledger rows."""

import logging

import pytest

from pinbot.ingest import ingest_descriptors
from pinbot.ipfs_api import validate_address
from pinbot.types import AlexandriaDescriptor, Oip041Descriptor

from conftest import ADDR_A, ADDR_B, ADDR_C


def ids(ledger):
    return sorted(i.item_id for i in ledger.all_items())


class TestAlexandriaStandalone:
    def test_each_valid_field_is_its_own_root(self, ledger):
        desc = AlexandriaDescriptor(
            filename="none",
            dht_hash=ADDR_A,
            fields={"posterFrame": ADDR_B, "coverArt": "not a hash"},
        )
        result = ingest_descriptors([desc], ledger, validate_address)

        assert ids(ledger) == sorted([ADDR_A, ADDR_B])
        for address in (ADDR_A, ADDR_B):
            assert ledger.get(address).root_address == address
        assert result.created == 2
        assert result.skipped == 1

    def test_invalid_dht_hash_does_not_block_fields(self, ledger):
        desc = AlexandriaDescriptor(
            filename="none",
            dht_hash="garbage!",
            fields={"trailer": ADDR_C},
        )
        ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == [ADDR_C]


class TestAlexandriaRelative:
    def test_filename_and_fields_under_root(self, ledger):
        desc = AlexandriaDescriptor(
            filename="movie.mp4",
            dht_hash=ADDR_A,
            fields={"poster": "poster.jpg", "trailer": "trailer.mp4"},
        )
        result = ingest_descriptors([desc], ledger, validate_address)

        assert ids(ledger) == sorted([
            f"{ADDR_A}/movie.mp4",
            f"{ADDR_A}/poster.jpg",
            f"{ADDR_A}/trailer.mp4",
        ])
        assert all(i.root_address == ADDR_A for i in ledger.all_items())
        assert result.created == 3

    def test_invalid_root_skips_whole_descriptor(self, ledger, caplog):
        desc = AlexandriaDescriptor(
            filename="movie.mp4",
            dht_hash="Qm-not-valid",
            fields={"poster": "poster.jpg"},
        )
        with caplog.at_level(logging.WARNING):
            result = ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == []
        assert result.skipped == 1
        assert "Qm-not-valid" in caplog.text

    def test_root_is_trimmed(self, ledger):
        desc = AlexandriaDescriptor(filename="a.mp3", dht_hash=f"  {ADDR_A}\n", fields={})
        ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == [f"{ADDR_A}/a.mp3"]

    def test_missing_filename_skipped(self, ledger):
        desc = AlexandriaDescriptor(filename="", dht_hash=ADDR_A, fields={"poster": "p.jpg"})
        result = ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == []
        assert result.skipped == 1


class TestOip041:
    def test_files_ingested_under_location(self, ledger):
        desc = Oip041Descriptor(
            location=ADDR_B,
            filenames=["track1.flac", "", "cover.png"],
            title="Album",
            timestamp=1480000000,
        )
        result = ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == sorted([f"{ADDR_B}/track1.flac", f"{ADDR_B}/cover.png"])
        assert result.created == 2

    def test_no_files_logged_as_alert(self, ledger, caplog):
        desc = Oip041Descriptor(location=ADDR_B, filenames=None, title="T", timestamp=1234)
        with caplog.at_level(logging.CRITICAL):
            result = ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == []
        assert result.skipped == 1
        assert "1234" in caplog.text

    def test_invalid_location_warns_but_ingests_entries(self, ledger, caplog):
        desc = Oip041Descriptor(
            location="odd-root", filenames=["a.mp4"], title="Odd", timestamp=1
        )
        with caplog.at_level(logging.WARNING):
            ingest_descriptors([desc], ledger, validate_address)
        assert "Invalid DHT Hash found" in caplog.text
        assert ids(ledger) == ["odd-root/a.mp4"]

    def test_location_with_slash_refused(self, ledger):
        desc = Oip041Descriptor(
            location=f"{ADDR_A}/sub", filenames=["a.mp4"], title="", timestamp=1
        )
        result = ingest_descriptors([desc], ledger, validate_address)
        assert ids(ledger) == []
        assert result.skipped == 1


class TestIdempotence:
    def test_same_descriptor_twice(self, ledger):
        desc = AlexandriaDescriptor(
            filename="movie.mp4", dht_hash=ADDR_A, fields={"poster": "poster.jpg"}
        )
        first = ingest_descriptors([desc], ledger, validate_address)
        second = ingest_descriptors([desc], ledger, validate_address)

        assert first.created == 2
        assert second.created == 0
        assert second.duplicates == 2
        assert ids(ledger) == sorted([f"{ADDR_A}/movie.mp4", f"{ADDR_A}/poster.jpg"])

    def test_unknown_descriptor_type_rejected(self, ledger):
        with pytest.raises(TypeError):
            ingest_descriptors([{"raw": "dict"}], ledger, validate_address)
