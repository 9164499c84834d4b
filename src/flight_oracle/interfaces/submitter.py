"""ResponseSubmitter protocol - submits submitOracleResponse() transactions."""

from __future__ import annotations

from typing import Protocol

from flight_oracle.models.records import OracleResponse, SubmissionResult


class ResponseSubmitter(Protocol):
    """Submits oracle responses to the contract."""

    async def submit(self, response: OracleResponse) -> SubmissionResult:
        """Build, sign, and send a submitOracleResponse() transaction."""
        ...
