"""EventSubscription protocol - delivers OracleRequest events as an async stream."""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from flight_oracle.models.events import OracleRequestEvent


class EventSubscription(Protocol):
    """Cancellable stream of OracleRequest events with explicit acknowledgment."""

    def __aiter__(self) -> AsyncIterator[OracleRequestEvent]:
        """Iterate events in delivery order until closed."""
        ...

    async def ack(self, event: OracleRequestEvent) -> None:
        """Mark an event as fully processed."""
        ...

    async def get_cursor(self) -> tuple[int, int] | None:
        """Position of the last acknowledged event, for resumption."""
        ...

    def set_cursor(self, block_number: int, log_index: int) -> None:
        """Restore the position from persisted state."""
        ...

    def close(self) -> None:
        """Stop delivering events."""
        ...
