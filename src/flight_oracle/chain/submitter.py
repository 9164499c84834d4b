"""Web3 response submitter - sends submitOracleResponse() transactions."""

from __future__ import annotations

import asyncio
import logging

from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.exceptions import ContractLogicError, TimeExhausted

from flight_oracle.bindings.flight_surety import (
    REVERT_INDEX_MISMATCH,
    REVERT_REQUEST_CLOSED,
    SUBMIT_ORACLE_RESPONSE,
)
from flight_oracle.chain.connector import Sender
from flight_oracle.models.config import GAS_LIMIT
from flight_oracle.models.records import OracleResponse, SubmissionOutcome, SubmissionResult

log = logging.getLogger(__name__)

# Error kinds worth resubmitting once the cause clears (node, gas or nonce trouble)
RETRYABLE_KINDS = frozenset({"nonce", "underpriced", "out_of_gas", "connection"})

# (substring, kind) pairs checked in order against the lowercased error text
_ERROR_PATTERNS = (
    (REVERT_INDEX_MISMATCH.lower(), "index_mismatch"),
    (REVERT_REQUEST_CLOSED.lower(), "request_closed"),
    ("insufficient funds", "insufficient_funds"),
    ("nonce too low", "nonce"),
    ("nonce too high", "nonce"),
    ("already known", "nonce"),
    ("underpriced", "underpriced"),
    ("fee cap less than block base fee", "underpriced"),
    ("intrinsic gas too low", "out_of_gas"),
    ("out of gas", "out_of_gas"),
    ("gas required exceeds allowance", "out_of_gas"),
    ("connection", "connection"),
    ("revert", "reverted"),
)


def classify_error(exc: BaseException) -> str:
    """Map a submission exception to an error kind."""
    if isinstance(exc, (asyncio.TimeoutError, TimeExhausted)):
        return "timeout"
    msg = str(exc).lower()
    for needle, kind in _ERROR_PATTERNS:
        if needle in msg:
            return kind
    if isinstance(exc, ContractLogicError):
        return "reverted"
    if isinstance(exc, (ConnectionError, OSError)):
        return "connection"
    return "unknown"


class Web3ResponseSubmitter:
    """Submits submitOracleResponse() with a fixed gas ceiling.

    Sends through the node's own account (``transact``) unless the sender
    holds a local key, in which case the transaction is built, signed with
    eth_account and sent raw. By default a response counts as accepted as
    soon as the node hands back a tx hash; ``wait_for_receipt`` waits for
    the receipt and reports reverts.

    The airline is checksummed before encoding. Decoded OracleRequest logs
    always carry a full address; anything shorter (``"0xA"``) is rejected
    locally without sending a transaction.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        contract: AsyncContract,
        sender: Sender,
        gas_limit: int = GAS_LIMIT,
        wait_for_receipt: bool = False,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._w3 = w3
        self._contract = contract
        self._sender = sender
        self._gas_limit = gas_limit
        self._wait_for_receipt = wait_for_receipt
        self._receipt_timeout = receipt_timeout

    @property
    def sender(self) -> Sender:
        return self._sender

    async def submit(self, response: OracleResponse) -> SubmissionResult:
        log.info(
            "Submitting response index=%d flight=%s timestamp=%d status=%d",
            response.index, response.flight, response.timestamp, response.status_code,
        )
        try:
            fn = getattr(self._contract.functions, SUBMIT_ORACLE_RESPONSE)(
                response.index,
                Web3.to_checksum_address(response.airline),
                response.flight,
                response.timestamp,
                response.status_code,
            )
            if self._sender.signs_locally:
                tx = await fn.build_transaction({
                    "from": self._sender.address,
                    "nonce": await self._w3.eth.get_transaction_count(
                        self._sender.address, "pending",
                    ),
                    "gas": self._gas_limit,
                })
                signed = self._sender.account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = await fn.transact({
                    "from": self._sender.address,
                    "gas": self._gas_limit,
                })
        except Exception as exc:
            return self._failure(response, SubmissionOutcome.REJECTED, exc)

        tx_hex = Web3.to_hex(tx_hash)
        if not self._wait_for_receipt:
            log.info("Response broadcast for index=%d flight=%s (tx=%s)",
                     response.index, response.flight, tx_hex[:18])
            return SubmissionResult(
                outcome=SubmissionOutcome.ACCEPTED, response=response, tx_hash=tx_hex,
            )

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout,
            )
        except Exception as exc:
            return self._failure(response, SubmissionOutcome.UNKNOWN, exc, tx_hex)

        if receipt["status"] != 1:
            log.error("Response tx reverted for index=%d flight=%s (tx=%s)",
                      response.index, response.flight, tx_hex[:18])
            return SubmissionResult(
                outcome=SubmissionOutcome.REJECTED,
                response=response,
                tx_hash=tx_hex,
                error_kind="reverted",
                error="transaction reverted",
            )

        log.info("Response mined for index=%d flight=%s in block %s (tx=%s)",
                 response.index, response.flight, receipt["blockNumber"], tx_hex[:18])
        return SubmissionResult(
            outcome=SubmissionOutcome.ACCEPTED, response=response, tx_hash=tx_hex,
        )

    def _failure(
        self,
        response: OracleResponse,
        outcome: SubmissionOutcome,
        exc: Exception,
        tx_hash: str | None = None,
    ) -> SubmissionResult:
        kind = classify_error(exc)
        if kind == "timeout":
            outcome = SubmissionOutcome.UNKNOWN
        retryable = kind in RETRYABLE_KINDS
        log.warning(
            "submitOracleResponse %s for index=%d flight=%s (kind=%s, retryable=%s): %s",
            outcome.value, response.index, response.flight, kind, retryable, exc,
        )
        return SubmissionResult(
            outcome=outcome,
            response=response,
            tx_hash=tx_hash,
            error_kind=kind,
            retryable=retryable,
            error=str(exc),
        )
