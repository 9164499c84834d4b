"""Tier 2 fixtures: a real local Ethereum node (ganache, anvil or hardhat)."""

from __future__ import annotations

import httpx
import pytest

from flight_oracle.chain import connector

NODE_HTTP = "http://127.0.0.1:8545"
NODE_WS = "ws://127.0.0.1:8545"


@pytest.fixture(scope="session")
def node_available():
    """Check a local node answers JSON-RPC. Skip tier2 tests if not."""
    try:
        r = httpx.post(
            NODE_HTTP,
            json={"jsonrpc": "2.0", "id": 1, "method": "eth_chainId", "params": []},
            timeout=3,
        )
        if r.status_code == 200 and "result" in r.json():
            return True
        pytest.skip("Ethereum node not available at 127.0.0.1:8545")
    except (httpx.ConnectError, httpx.TimeoutException):
        pytest.skip("Ethereum node not available at 127.0.0.1:8545")


@pytest.fixture
async def w3(node_available):
    """Connected AsyncWeb3 over WebSocket."""
    client = connector.make_web3(NODE_WS)
    await connector.connect(client)
    yield client
    await connector.disconnect(client)
