"""Ethereum integration components."""

from flight_oracle.chain.connector import Sender, make_web3, resolve_sender
from flight_oracle.chain.queries import OracleQueries
from flight_oracle.chain.submitter import Web3ResponseSubmitter
from flight_oracle.chain.subscription import LogEventSubscription

__all__ = [
    "LogEventSubscription",
    "OracleQueries",
    "Sender",
    "Web3ResponseSubmitter",
    "make_web3",
    "resolve_sender",
]
