# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_integration.py

"""Integration tests requiring a running IPFS node."""

import asyncio

import pytest

from pinbot.config import load_config
from pinbot.ipfs_api import IPFSNode
from pinbot.ledger import Ledger
from pinbot.operations import run_cycle_async


# The empty unixfs directory, present on every node
EMPTY_DIR = "QmUNLLsPACCz1vLxQVkXqqLX5R1X345qqfHbsf67hvA3Nn"


@pytest.mark.integration
def test_node_identity():
    """The configured node reports a peer ID."""
    node = IPFSNode.from_config(load_config())
    peer_id = asyncio.run(node.local_node_identity())
    assert peer_id


@pytest.mark.integration
def test_cycle_against_live_node():
    """A cycle without catalog resolves a known object and checks providers."""
    config = load_config()
    node = IPFSNode.from_config(config)

    with Ledger(":memory:") as ledger:
        ledger.upsert_if_absent(EMPTY_DIR, EMPTY_DIR)
        report = asyncio.run(run_cycle_async(config, ledger, node, skip_catalog=True))

        item = ledger.get(EMPTY_DIR)
        assert report.sizes.resolved == 1
        assert item.resolved_address == EMPTY_DIR
        assert item.size_bytes is not None and item.size_bytes >= 0
