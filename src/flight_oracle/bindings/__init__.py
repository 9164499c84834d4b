"""FlightSurety contract bindings."""

from flight_oracle.bindings.flight_surety import (
    GET_MY_INDEXES,
    ORACLE_ABI,
    ORACLE_REQUEST,
    REGISTER_ORACLE,
    REGISTRATION_FEE,
    SUBMIT_ORACLE_RESPONSE,
    event_topic,
    load_abi,
)

__all__ = [
    "GET_MY_INDEXES",
    "ORACLE_ABI",
    "ORACLE_REQUEST",
    "REGISTER_ORACLE",
    "REGISTRATION_FEE",
    "SUBMIT_ORACLE_RESPONSE",
    "event_topic",
    "load_abi",
]
