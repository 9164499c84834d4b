"""Contract event models decoded from the OracleRequest log stream."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OracleRequestEvent:
    """Emitted when the app contract asks oracles for a flight status.

    Only oracles holding ``index`` may answer the request.
    """

    index: int
    airline: str  # checksum address
    flight: str
    timestamp: int  # unix seconds
    block_number: int = 0
    log_index: int = 0
    tx_hash: str = ""

    @property
    def position(self) -> tuple[int, int]:
        """Ordering key within the chain: (block, log index)."""
        return (self.block_number, self.log_index)
