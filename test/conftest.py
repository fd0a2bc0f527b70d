# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/conftest.py

"""Shared fixtures: an in-memory ledger and a scripted IPFS node."""

import asyncio

import pytest

from pinbot.ipfs_api import NetworkError, PinError, validate_address
from pinbot.ledger import Ledger


# Real CIDv0 addresses (valid base58 sha2-256 multihashes)
ADDR_A = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
ADDR_B = "QmUNLLsPACCz1vLxQVkXqqLX5R1X345qqfHbsf67hvA3Nn"
ADDR_C = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"
LOCAL_ID = "12D3KooWLocalNode"


class FakeNode:
    """Scripted stand-in for IPFSNode.

    objects: path -> ObjectInfo (missing paths raise NetworkError)
    providers: address -> list[ProviderRecord] (missing raise NetworkError)
    pin_failures: addresses whose pin raises PinError
    """

    def __init__(self, objects=None, providers=None, pin_failures=(), delay=0.0):
        self.objects = objects or {}
        self.providers = providers or {}
        self.pin_failures = set(pin_failures)
        self.delay = delay
        self.local_id = LOCAL_ID
        self.resolved = []          # paths, in call order
        self.pinned = []            # addresses, in call order
        self.in_flight = 0
        self.max_in_flight = 0

    async def _busy(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def resolve_object(self, address):
        self.resolved.append(address)
        await self._busy()
        if address not in self.objects:
            raise NetworkError(f"context deadline exceeded resolving {address}")
        return self.objects[address]

    async def find_providers(self, address, timeout):
        await self._busy()
        if address not in self.providers:
            raise NetworkError(f"routing lookup for {address} timed out")
        return self.providers[address]

    async def add_pin(self, address):
        self.pinned.append(address)
        await self._busy()
        if address in self.pin_failures:
            raise PinError(f"pin: {address} not found", 500)

    async def local_node_identity(self):
        return self.local_id

    def validate_address(self, candidate):
        return validate_address(candidate)


@pytest.fixture
def ledger():
    """In-memory ledger, closed after the test."""
    ledger = Ledger(":memory:")
    yield ledger
    ledger.close()


@pytest.fixture
def fake_node():
    return FakeNode()
