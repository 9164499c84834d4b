"""Internal record types for state persistence and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SubmissionOutcome(str, Enum):
    """What we know about a submitted response transaction."""

    ACCEPTED = "accepted"  # node returned a tx hash (or a successful receipt)
    REJECTED = "rejected"  # node or contract refused it
    UNKNOWN = "unknown"  # timed out waiting, may or may not be mined


@dataclass(frozen=True)
class OracleResponse:
    """A status report for one matching (index, request) pair."""

    index: int
    airline: str
    flight: str
    timestamp: int
    status_code: int


@dataclass
class SubmissionResult:
    """Result of a submitOracleResponse() transaction submission."""

    outcome: SubmissionOutcome
    response: OracleResponse
    tx_hash: str | None = None
    error_kind: str | None = None  # "index_mismatch", "nonce", "timeout", ...
    retryable: bool = False
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome == SubmissionOutcome.ACCEPTED


@dataclass
class ResponseRecord:
    """A submitted response as persisted in the state store."""

    id: int
    index: int
    airline: str
    flight: str
    timestamp: int
    status_code: int
    outcome: str
    tx_hash: str | None
    error_kind: str | None
    block_number: int | None
    created_at: str


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    oracle_index: int | None
    flight: str | None
    message: str
    created_at: str


@dataclass
class ResponderStats:
    """In-memory counters for one responder run."""

    events_seen: int = 0
    events_matched: int = 0
    responses_accepted: int = 0
    responses_failed: int = 0
    event_errors: int = 0
    failures_by_kind: dict[str, int] = field(default_factory=dict)

    def record_failure(self, kind: str) -> None:
        self.responses_failed += 1
        self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1
