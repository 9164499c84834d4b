"""Mock implementations of all chain-facing components."""

from __future__ import annotations

from flight_oracle.chain.subscription import Backoff, LogEventSubscription
from flight_oracle.models.events import OracleRequestEvent
from flight_oracle.models.records import OracleResponse, SubmissionOutcome, SubmissionResult


class MockSubscription:
    """Implements EventSubscription protocol. Yields pre-loaded events, then ends.

    The cursor stops short of the first delivered event that was not acked.
    """

    def __init__(self, *events: OracleRequestEvent) -> None:
        self.events: list[OracleRequestEvent] = list(events)
        self.acked: list[OracleRequestEvent] = []
        self.restored: tuple[int, int] | None = None
        self.closed = False
        self._cursor: tuple[int, int] | None = None
        self._held = False

    def enqueue(self, *events: OracleRequestEvent) -> None:
        """Test helper: stage events for delivery."""
        self.events.extend(events)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while self.events and not self.closed:
            event = self.events.pop(0)
            yield event
            if event not in self.acked:
                self._held = True

    async def ack(self, event: OracleRequestEvent) -> None:
        self.acked.append(event)
        if self._held:
            return
        if self._cursor is None or event.position > self._cursor:
            self._cursor = event.position

    async def get_cursor(self) -> tuple[int, int] | None:
        return self._cursor

    def set_cursor(self, block_number: int, log_index: int) -> None:
        self.restored = (block_number, log_index)
        self._cursor = (block_number, log_index)

    def close(self) -> None:
        self.closed = True


class ScriptedSubscription(LogEventSubscription):
    """Serves events from an in-memory chain instead of a node.

    Closes itself once it has caught up with ``head``.
    """

    def __init__(self, chain, head, fail_times=0, **kwargs):
        kwargs.setdefault("poll_interval", 0)
        kwargs.setdefault("backoff", Backoff(0, 0))
        super().__init__(None, None, **kwargs)
        self.chain = chain
        self.head = head
        self.fail_times = fail_times
        self.windows: list[tuple[int, int]] = []

    async def _latest_block(self) -> int:
        if self.next_block > self.head:
            self.close()
        return self.head

    async def _fetch_events(self, from_block, to_block):
        if self.fail_times:
            self.fail_times -= 1
            raise ConnectionError("socket closed")
        self.windows.append((from_block, to_block))
        return [e for e in self.chain if from_block <= e.block_number <= to_block]


class MockSubmitter:
    """Implements ResponseSubmitter protocol."""

    def __init__(
        self,
        succeed: bool = True,
        outcome: SubmissionOutcome = SubmissionOutcome.REJECTED,
        error_kind: str = "index_mismatch",
        retryable: bool = False,
        raises: Exception | None = None,
    ) -> None:
        self.succeed = succeed
        self.outcome = outcome
        self.error_kind = error_kind
        self.retryable = retryable
        self.raises = raises
        self.calls: list[OracleResponse] = []

    async def submit(self, response: OracleResponse) -> SubmissionResult:
        self.calls.append(response)
        if self.raises is not None:
            raise self.raises
        if self.succeed:
            return SubmissionResult(
                outcome=SubmissionOutcome.ACCEPTED,
                response=response,
                tx_hash=f"0x{len(self.calls):064x}",
            )
        return SubmissionResult(
            outcome=self.outcome,
            response=response,
            error_kind=self.error_kind,
            retryable=self.retryable,
            error=f"mock {self.error_kind}",
        )


class MockQueries:
    """Stands in for OracleQueries."""

    def __init__(self, indexes: tuple[int, ...] = (4, 5, 6), fee: int | None = 10**18) -> None:
        self.indexes = indexes
        self.fee = fee
        self.address = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        self.index_calls = 0

    async def get_my_indexes(self) -> tuple[int, ...]:
        self.index_calls += 1
        return self.indexes

    async def get_registration_fee(self) -> int | None:
        return self.fee
