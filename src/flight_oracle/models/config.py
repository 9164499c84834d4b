"""Configuration models for the oracle daemon."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

GAS_LIMIT = 500_000  # gas ceiling for submitOracleResponse()


class IndexSource(str, Enum):
    """Where the oracle's assigned indexes come from."""

    STATIC = "static"  # indexes listed in config
    CONTRACT = "contract"  # getMyIndexes() called from our account


@dataclass
class OracleConfig:
    """Complete daemon configuration."""

    # Daemon
    poll_interval: float = 2.0  # seconds between getLogs calls once caught up
    error_backoff: float = 1.0  # first delay after a transport error
    max_backoff: float = 60.0
    log_level: str = "info"

    # Chain
    rpc_url: str = "ws://127.0.0.1:8545"
    app_address: str = ""  # FlightSuretyApp
    oracle_address: str = ""  # contract emitting OracleRequest; defaults to app_address
    app_abi_path: str = ""  # Truffle artifact, empty = built-in ABI
    oracle_abi_path: str = ""
    from_block: int = 0
    batch_size: int = 1000  # blocks per getLogs window
    gas_limit: int = GAS_LIMIT
    account_index: int = 0  # node-managed account, used when no private key
    private_key: str = ""  # loaded from env var FLIGHT_ORACLE_PRIVATE_KEY
    wait_for_receipt: bool = False
    receipt_timeout: float = 120.0

    # Oracle
    index_source: IndexSource = IndexSource.STATIC
    indexes: tuple[int, ...] = (1, 2, 3)

    # Health API
    http_enabled: bool = True
    http_host: str = "127.0.0.1"
    http_port: int = 3000

    # Storage
    db_path: str = "~/.flight_oracle/state.db"

    @property
    def response_contract(self) -> str:
        """Address of the contract that emits OracleRequest."""
        return self.oracle_address or self.app_address
