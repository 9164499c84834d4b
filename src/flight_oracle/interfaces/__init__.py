"""Protocol interfaces for all flight_oracle components."""

from flight_oracle.interfaces.subscription import EventSubscription
from flight_oracle.interfaces.submitter import ResponseSubmitter
from flight_oracle.interfaces.store import StateStore

__all__ = [
    "EventSubscription",
    "ResponseSubmitter",
    "StateStore",
]
