"""Shared fixtures for flight_oracle tests."""

from __future__ import annotations

import random

import pytest
from pytest_metadata.plugin import metadata_key

from flight_oracle.models.config import OracleConfig
from flight_oracle.responder import OracleResponder
from flight_oracle.storage.sqlite import SQLiteStateStore

from tests.mocks import MockQueries, MockSubmitter, MockSubscription

# Well-known local dev key (Hardhat/Anvil account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

APP_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
AIRLINE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"

NODE_URL = "ws://127.0.0.1:8545"


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Local Ethereum node"
    meta["Node URL"] = NODE_URL
    meta["App Contract"] = APP_ADDRESS


def make_test_config(**overrides) -> OracleConfig:
    """Build an OracleConfig suitable for testing."""
    defaults = dict(
        poll_interval=0,
        error_backoff=0,
        max_backoff=0,
        rpc_url=NODE_URL,
        app_address=APP_ADDRESS,
        indexes=(1, 2, 3),
        http_enabled=False,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return OracleConfig(**defaults)


@pytest.fixture
def test_config():
    """Default OracleConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_subscription():
    return MockSubscription()


@pytest.fixture
def mock_submitter():
    return MockSubmitter(succeed=True)


@pytest.fixture
def mock_queries():
    return MockQueries()


@pytest.fixture
def responder(store, mock_submitter):
    """OracleResponder for indexes {1, 2, 3} with a seeded status generator."""
    return OracleResponder(mock_submitter, store, (1, 2, 3), rng=random.Random(7))
