"""Configuration loading: TOML file + environment variables + deployments config.json."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from urllib.parse import urlparse

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from eth_account import Account
from web3 import Web3

from flight_oracle.bindings.flight_surety import load_abi
from flight_oracle.chain.connector import HTTP_SCHEMES, WEBSOCKET_SCHEMES, to_websocket_url
from flight_oracle.models.config import IndexSource, OracleConfig

log = logging.getLogger(__name__)

MAX_INDEX = 255  # indexes are uint8 on-chain


class ConfigError(ValueError):
    """Raised when the configuration cannot drive a working oracle."""


def parse_indexes(value: object) -> tuple[int, ...]:
    """Parse ``[1, 2, 3]`` or ``"1,2,3"`` into a duplicate-free index tuple."""
    if isinstance(value, str):
        items = [v.strip() for v in value.split(",") if v.strip()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ConfigError(f"Oracle indexes must be a list, got {value!r}")

    indexes: list[int] = []
    for item in items:
        try:
            index = int(item)
        except (TypeError, ValueError):
            raise ConfigError(f"Oracle index is not an integer: {item!r}") from None
        if index in indexes:
            log.warning("Duplicate oracle index %d ignored", index)
            continue
        indexes.append(index)
    return tuple(indexes)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "FLIGHT_ORACLE_",
) -> OracleConfig:
    """Load oracle configuration from TOML file, env vars, and config.json.

    Priority (highest wins):
        1. Environment variables (FLIGHT_ORACLE_PRIVATE_KEY, etc.)
        2. TOML config file
        3. Deployments file (Truffle dapp config.json)
        4. Defaults from OracleConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = OracleConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = float(v)
    if v := daemon.get("error_backoff"):
        cfg.error_backoff = float(v)
    if v := daemon.get("max_backoff"):
        cfg.max_backoff = float(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Chain section ──────────────────────────────────────
    chain = raw.get("chain", {})

    # Deployments first so explicit settings override them
    if deployments_path := chain.get("deployments_path"):
        _load_deployments(cfg, deployments_path, chain.get("network", "localhost"))

    if v := chain.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := chain.get("app_address"):
        cfg.app_address = str(v)
    if v := chain.get("oracle_address"):
        cfg.oracle_address = str(v)
    if v := chain.get("app_abi_path"):
        cfg.app_abi_path = str(v)
    if v := chain.get("oracle_abi_path"):
        cfg.oracle_abi_path = str(v)
    if v := chain.get("from_block"):
        cfg.from_block = int(v)
    if v := chain.get("batch_size"):
        cfg.batch_size = int(v)
    if v := chain.get("gas_limit"):
        cfg.gas_limit = int(v)
    if v := chain.get("account_index"):
        cfg.account_index = int(v)
    if v := chain.get("private_key"):
        cfg.private_key = str(v)
    if "wait_for_receipt" in chain:
        cfg.wait_for_receipt = bool(chain["wait_for_receipt"])
    if v := chain.get("receipt_timeout"):
        cfg.receipt_timeout = float(v)

    # ── Oracle section ─────────────────────────────────────
    oracle = raw.get("oracle", {})
    if "indexes" in oracle:
        cfg.indexes = parse_indexes(oracle["indexes"])
    if v := oracle.get("index_source"):
        try:
            cfg.index_source = IndexSource(v)
        except ValueError:
            raise ConfigError(f"Unknown index_source: {v!r}") from None

    # ── HTTP section ───────────────────────────────────────
    http = raw.get("http", {})
    if "enabled" in http:
        cfg.http_enabled = bool(http["enabled"])
    if v := http.get("host"):
        cfg.http_host = str(v)
    if v := http.get("port"):
        cfg.http_port = int(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}PRIVATE_KEY"):
        cfg.private_key = key
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if addr := os.environ.get(f"{env_prefix}APP_ADDRESS"):
        cfg.app_address = addr
    if addr := os.environ.get(f"{env_prefix}ORACLE_ADDRESS"):
        cfg.oracle_address = addr
    if indexes := os.environ.get(f"{env_prefix}INDEXES"):
        cfg.indexes = parse_indexes(indexes)
    if block := os.environ.get(f"{env_prefix}FROM_BLOCK"):
        cfg.from_block = int(block)
    if port := os.environ.get(f"{env_prefix}HTTP_PORT"):
        cfg.http_port = int(port)
    if db_path := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db_path

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _load_deployments(cfg: OracleConfig, deployments_path: str, network: str) -> None:
    """Load node URL and contract addresses from the dapp's config.json.

    The dapp writes ``{"localhost": {"url": ..., "appAddress": ..., "dataAddress": ...}}``.
    Its URL is http; the oracle listens over the matching WebSocket URL.
    """
    p = Path(deployments_path).expanduser()
    if not p.is_absolute():
        # Try relative to CWD
        p = Path.cwd() / p
    if not p.exists():
        log.warning("Deployments file %s not found", p)
        return

    with open(p) as f:
        data = json.load(f)

    entry = data.get(network, {})
    if url := entry.get("url"):
        cfg.rpc_url = to_websocket_url(url)
    if addr := entry.get("appAddress"):
        cfg.app_address = addr
    if addr := entry.get("oracleAddress"):
        cfg.oracle_address = addr


def validate_config(cfg: OracleConfig) -> None:
    """Fail fast on anything that would stop the oracle from working.

    Raises ConfigError with a message naming the offending setting.
    """
    scheme = urlparse(cfg.rpc_url).scheme
    if scheme not in WEBSOCKET_SCHEMES + HTTP_SCHEMES:
        raise ConfigError(f"rpc_url must be a ws(s):// or http(s):// URL, got {cfg.rpc_url!r}")

    if not cfg.response_contract:
        raise ConfigError("No contract address configured (app_address or oracle_address)")
    for name in ("app_address", "oracle_address"):
        addr = getattr(cfg, name)
        if addr and not Web3.is_address(addr):
            raise ConfigError(f"{name} is not a valid address: {addr!r}")

    for name in ("app_abi_path", "oracle_abi_path"):
        path = getattr(cfg, name)
        if not path:
            continue
        try:
            load_abi(path)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"{name}: cannot load ABI from {path!r}: {exc}") from exc

    if cfg.index_source == IndexSource.STATIC:
        if not cfg.indexes:
            raise ConfigError("No oracle indexes configured")
        bad = [i for i in cfg.indexes if not 0 <= i <= MAX_INDEX]
        if bad:
            raise ConfigError(f"Oracle indexes out of range 0-{MAX_INDEX}: {bad}")

    if cfg.gas_limit <= 0:
        raise ConfigError("gas_limit must be positive")
    if cfg.batch_size <= 0:
        raise ConfigError("batch_size must be positive")

    if cfg.private_key:
        try:
            Account.from_key(cfg.private_key)
        except Exception as exc:
            raise ConfigError(f"private_key is not a valid key: {exc}") from exc
