"""OracleRequest subscription - turns eth_getLogs into an async event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping

from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract

from flight_oracle.bindings.flight_surety import ORACLE_REQUEST, event_topic
from flight_oracle.models.events import OracleRequestEvent

log = logging.getLogger(__name__)

ErrorHook = Callable[[Exception], Awaitable[None]]
ReconnectHook = Callable[[], Awaitable[None]]


class Backoff:
    """Exponential delay for transport retries, capped at ``maximum``."""

    def __init__(self, initial: float = 1.0, maximum: float = 60.0, factor: float = 2.0) -> None:
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self._attempt = 0

    @property
    def attempts(self) -> int:
        return self._attempt

    def next_delay(self) -> float:
        delay = min(self.maximum, self.initial * self.factor ** self._attempt)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0


def parse_oracle_request(decoded: Mapping[str, Any]) -> OracleRequestEvent:
    """Convert a decoded web3 EventData into an OracleRequestEvent."""
    args = decoded["args"]
    tx_hash = decoded.get("transactionHash")
    if tx_hash is not None and not isinstance(tx_hash, str):
        tx_hash = Web3.to_hex(tx_hash)
    return OracleRequestEvent(
        index=int(args["index"]),
        airline=str(args["airline"]),
        flight=str(args["flight"]),
        timestamp=int(args["timestamp"]),
        block_number=int(decoded.get("blockNumber") or 0),
        log_index=int(decoded.get("logIndex") or 0),
        tx_hash=tx_hash or "",
    )


class LogEventSubscription:
    """Delivers OracleRequest events from a contract, block window by block window.

    Starts at ``from_block`` (or just after a restored cursor), catches up in
    ``batch_size`` windows, then polls for new blocks every ``poll_interval``
    seconds. Transport failures are retried with exponential backoff and the
    window that failed is fetched again. Consumers call ``ack()`` after
    processing an event; the cursor they persist never passes an event that
    was delivered but not acknowledged.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        contract: AsyncContract,
        from_block: int = 0,
        batch_size: int = 1000,
        poll_interval: float = 2.0,
        backoff: Backoff | None = None,
        reconnect: ReconnectHook | None = None,
        on_error: ErrorHook | None = None,
    ) -> None:
        self._w3 = w3
        self._contract = contract
        self._next_block = from_block
        self._batch_size = max(1, batch_size)
        self._poll_interval = poll_interval
        self._backoff = backoff or Backoff()
        self._reconnect = reconnect
        self._on_error = on_error
        self._resume_after: tuple[int, int] | None = None
        self._cursor: tuple[int, int] | None = None
        self._max_acked: tuple[int, int] | None = None
        self._unacked: set[tuple[int, int]] = set()
        self._topic: str | None = None
        self._closed = asyncio.Event()
        self.transport_errors = 0

    @property
    def next_block(self) -> int:
        return self._next_block

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def unacked(self) -> list[tuple[int, int]]:
        """Positions delivered but never acknowledged, oldest first."""
        return sorted(self._unacked)

    def set_cursor(self, block_number: int, log_index: int) -> None:
        """Resume after a persisted position; that block is fetched again."""
        position = (block_number, log_index)
        self._resume_after = self._cursor = self._max_acked = position
        self._unacked.clear()
        self._next_block = block_number

    async def get_cursor(self) -> tuple[int, int] | None:
        """Highest acknowledged position with nothing unacknowledged before it.

        An event that was delivered but never acked holds the cursor back, so
        a restart from the persisted cursor delivers it again.
        """
        return self._cursor

    async def ack(self, event: OracleRequestEvent) -> None:
        position = event.position
        self._unacked.discard(position)
        if self._max_acked is None or position > self._max_acked:
            self._max_acked = position
        if not self._unacked:
            self._cursor = self._max_acked
        elif position < min(self._unacked) and (self._cursor is None or position > self._cursor):
            self._cursor = position

    def close(self) -> None:
        self._closed.set()

    def __aiter__(self) -> AsyncIterator[OracleRequestEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[OracleRequestEvent]:
        while not self.closed:
            try:
                latest = await self._latest_block()
                if latest < self._next_block:
                    await self._sleep(self._poll_interval)
                    continue
                to_block = min(latest, self._next_block + self._batch_size - 1)
                batch = await self._fetch_events(self._next_block, to_block)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                await self._handle_transport_error(exc)
                continue

            self._backoff.reset()
            if batch:
                log.info(
                    "Fetched %d OracleRequest events in blocks %d-%d",
                    len(batch), self._next_block, to_block,
                )
            for event in sorted(batch, key=lambda e: e.position):
                if self._resume_after is not None and event.position <= self._resume_after:
                    continue
                if self.closed:
                    return
                self._unacked.add(event.position)
                yield event
            self._next_block = to_block + 1

    async def _handle_transport_error(self, exc: Exception) -> None:
        self.transport_errors += 1
        delay = self._backoff.next_delay()
        log.error(
            "OracleRequest stream failed (kind=transport, attempt=%d): %s; retrying in %.1fs",
            self._backoff.attempts, exc, delay,
        )
        if self._on_error is not None:
            try:
                await self._on_error(exc)
            except Exception as hook_exc:
                log.warning("Stream error hook failed: %s", hook_exc)
        await self._sleep(delay)
        if self._reconnect is not None and not self.closed:
            try:
                await self._reconnect()
            except Exception as reconnect_exc:
                log.warning("Reconnect failed: %s", reconnect_exc)

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early if the subscription is closed."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ── Node access ────────────────────────────────────────

    async def _latest_block(self) -> int:
        return await self._w3.eth.block_number

    async def _fetch_events(self, from_block: int, to_block: int) -> list[OracleRequestEvent]:
        if self._topic is None:
            self._topic = event_topic(self._contract.abi, ORACLE_REQUEST)
        logs = await self._w3.eth.get_logs({
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": self._contract.address,
            "topics": [self._topic],
        })
        event_type = getattr(self._contract.events, ORACLE_REQUEST)()
        events: list[OracleRequestEvent] = []
        for raw in logs:
            try:
                events.append(parse_oracle_request(event_type.process_log(raw)))
            except Exception as exc:
                log.warning(
                    "Could not decode OracleRequest log in block %s: %s",
                    raw.get("blockNumber"), exc,
                )
        return events
