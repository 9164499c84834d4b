"""StateStore protocol - persists the cursor, responses and activity."""

from __future__ import annotations

from typing import Protocol

from flight_oracle.models.events import OracleRequestEvent
from flight_oracle.models.records import ActivityRecord, ResponseRecord, SubmissionResult


class StateStore(Protocol):
    """Persists daemon state for crash recovery and the CLI."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        """Close the database connection."""
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> tuple[int, int] | None:
        ...

    async def set_cursor(self, block_number: int, log_index: int) -> None:
        ...

    # ── Responses ──────────────────────────────────────────

    async def save_response(
        self, result: SubmissionResult, event: OracleRequestEvent | None = None,
    ) -> None:
        ...

    async def get_responses(self, limit: int = 50) -> list[ResponseRecord]:
        ...

    async def count_responses(self, outcome: str | None = None) -> int:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        oracle_index: int | None = None,
        flight: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
