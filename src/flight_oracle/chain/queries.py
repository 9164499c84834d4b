"""Read-only queries and oracle registration against the app contract."""

from __future__ import annotations

import logging

from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract

from flight_oracle.bindings.flight_surety import GET_MY_INDEXES, REGISTER_ORACLE, REGISTRATION_FEE
from flight_oracle.chain.connector import Sender

log = logging.getLogger(__name__)

REGISTER_GAS_LIMIT = 3_000_000


def format_eth(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'ether')} ETH"


class OracleQueries:
    """Queries the app contract on behalf of our signing account.

    ``getMyIndexes()`` reads ``msg.sender``, so calls carry ``from``.
    """

    def __init__(self, w3: AsyncWeb3, contract: AsyncContract, sender: Sender) -> None:
        self._w3 = w3
        self._contract = contract
        self._sender = sender

    @property
    def address(self) -> str:
        return self._sender.address

    async def get_my_indexes(self) -> tuple[int, ...]:
        """Indexes the contract assigned to our account at registration.

        Raises if the account is not registered (the contract reverts).
        """
        fn = getattr(self._contract.functions, GET_MY_INDEXES)()
        raw = await fn.call({"from": self._sender.address})
        return tuple(int(i) for i in raw)

    async def get_registration_fee(self) -> int | None:
        """REGISTRATION_FEE in wei, or None when the call fails."""
        try:
            return int(await getattr(self._contract.functions, REGISTRATION_FEE)().call())
        except Exception as exc:
            log.warning("REGISTRATION_FEE query failed: %s", exc)
            return None

    async def get_balance(self) -> int:
        return await self._w3.eth.get_balance(self._sender.address)

    async def register_oracle(self, fee: int) -> str:
        """Call registerOracle() paying ``fee`` wei; returns the tx hash once mined.

        Raises RuntimeError if the transaction reverts.
        """
        fn = getattr(self._contract.functions, REGISTER_ORACLE)()
        params = {"from": self._sender.address, "value": fee, "gas": REGISTER_GAS_LIMIT}
        if self._sender.signs_locally:
            params["nonce"] = await self._w3.eth.get_transaction_count(
                self._sender.address, "pending",
            )
            tx = await fn.build_transaction(params)
            signed = self._sender.account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        else:
            tx_hash = await fn.transact(params)

        receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash)
        tx_hex = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise RuntimeError(f"registerOracle reverted (tx={tx_hex})")
        log.info("Registered oracle %s (tx=%s)", self._sender.address, tx_hex)
        return tx_hex
