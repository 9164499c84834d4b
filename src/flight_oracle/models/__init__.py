"""Data models for the flight_oracle daemon."""

from flight_oracle.models.events import OracleRequestEvent
from flight_oracle.models.records import (
    ActivityRecord,
    OracleResponse,
    ResponderStats,
    ResponseRecord,
    SubmissionOutcome,
    SubmissionResult,
)
from flight_oracle.models.config import GAS_LIMIT, IndexSource, OracleConfig

__all__ = [
    "OracleRequestEvent",
    "ActivityRecord", "OracleResponse", "ResponderStats", "ResponseRecord",
    "SubmissionOutcome", "SubmissionResult",
    "GAS_LIMIT", "IndexSource", "OracleConfig",
]
