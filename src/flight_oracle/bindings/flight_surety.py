"""Minimal FlightSurety ABI fragments used by the oracle.

Only the oracle-facing surface is described here. A full Truffle artifact
can be supplied through configuration and takes precedence.
"""

from __future__ import annotations

import json
from pathlib import Path

from web3 import Web3

ORACLE_REQUEST = "OracleRequest"
SUBMIT_ORACLE_RESPONSE = "submitOracleResponse"
GET_MY_INDEXES = "getMyIndexes"
REGISTER_ORACLE = "registerOracle"
REGISTRATION_FEE = "REGISTRATION_FEE"

ORACLE_ABI: list[dict] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "index", "type": "uint8"},
            {"indexed": False, "name": "airline", "type": "address"},
            {"indexed": False, "name": "flight", "type": "string"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
        "name": ORACLE_REQUEST,
        "type": "event",
    },
    {
        "inputs": [
            {"name": "index", "type": "uint8"},
            {"name": "airline", "type": "address"},
            {"name": "flight", "type": "string"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "statusCode", "type": "uint8"},
        ],
        "name": SUBMIT_ORACLE_RESPONSE,
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": GET_MY_INDEXES,
        "outputs": [{"name": "", "type": "uint8[3]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": REGISTER_ORACLE,
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": REGISTRATION_FEE,
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Revert reasons from FlightSuretyApp.submitOracleResponse()
REVERT_INDEX_MISMATCH = "Index does not match oracle request"
REVERT_REQUEST_CLOSED = "Flight or timestamp do not match oracle request"


def load_abi(artifact_path: str | Path | None) -> list[dict]:
    """Load an ABI from a Truffle artifact, or fall back to ORACLE_ABI.

    Accepts either a full artifact (``{"abi": [...], ...}``) or a bare ABI list.
    """
    if not artifact_path:
        return ORACLE_ABI
    p = Path(artifact_path).expanduser()
    with open(p) as f:
        data = json.load(f)
    abi = data.get("abi") if isinstance(data, dict) else data
    if not isinstance(abi, list):
        raise ValueError(f"No ABI list found in {p}")
    return abi


def find_entry(abi: list[dict], name: str, kind: str) -> dict | None:
    """Return the first ABI entry of ``kind`` ("event"/"function") named ``name``."""
    for entry in abi:
        if entry.get("type") == kind and entry.get("name") == name:
            return entry
    return None


def event_signature(entry: dict) -> str:
    """Canonical signature, e.g. ``OracleRequest(uint8,address,string,uint256)``."""
    types = ",".join(i["type"] for i in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def event_topic(abi: list[dict], name: str = ORACLE_REQUEST) -> str:
    """topic[0] (keccak256 of the event signature) as 0x-prefixed hex."""
    entry = find_entry(abi, name, "event")
    if entry is None:
        raise ValueError(f"Event {name} not found in ABI")
    return Web3.to_hex(Web3.keccak(text=event_signature(entry)))
