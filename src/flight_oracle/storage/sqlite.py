"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from flight_oracle.models.events import OracleRequestEvent
from flight_oracle.models.records import ActivityRecord, ResponseRecord, SubmissionResult

SCHEMA = """
-- Last acknowledged OracleRequest position
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    block_number INTEGER NOT NULL,
    log_index INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Submitted responses, one row per submission attempt
CREATE TABLE IF NOT EXISTS responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    oracle_index INTEGER NOT NULL,
    airline TEXT NOT NULL,
    flight TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    status_code INTEGER NOT NULL,
    outcome TEXT NOT NULL,
    tx_hash TEXT,
    error_kind TEXT,
    error TEXT,
    block_number INTEGER,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_responses_outcome ON responses(outcome);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    oracle_index INTEGER,
    flight TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> tuple[int, int] | None:
        async with self.db.execute(
            "SELECT block_number, log_index FROM cursor WHERE id=1"
        ) as cur:
            row = await cur.fetchone()
            return (row["block_number"], row["log_index"]) if row else None

    async def set_cursor(self, block_number: int, log_index: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, block_number, log_index, updated_at) VALUES (1, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET block_number=excluded.block_number,"
            " log_index=excluded.log_index, updated_at=excluded.updated_at",
            (block_number, log_index, _now()),
        )
        await self.db.commit()

    # ── Responses ──────────────────────────────────────────

    async def save_response(
        self, result: SubmissionResult, event: OracleRequestEvent | None = None,
    ) -> None:
        r = result.response
        await self.db.execute(
            "INSERT INTO responses"
            " (oracle_index, airline, flight, timestamp, status_code, outcome,"
            "  tx_hash, error_kind, error, block_number, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                r.index, r.airline, r.flight, r.timestamp, r.status_code,
                result.outcome.value, result.tx_hash, result.error_kind, result.error,
                event.block_number if event else None, _now(),
            ),
        )
        await self.db.commit()

    async def get_responses(self, limit: int = 50) -> list[ResponseRecord]:
        async with self.db.execute(
            "SELECT * FROM responses ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ResponseRecord(
                    id=row["id"],
                    index=row["oracle_index"],
                    airline=row["airline"],
                    flight=row["flight"],
                    timestamp=row["timestamp"],
                    status_code=row["status_code"],
                    outcome=row["outcome"],
                    tx_hash=row["tx_hash"],
                    error_kind=row["error_kind"],
                    block_number=row["block_number"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]

    async def count_responses(self, outcome: str | None = None) -> int:
        if outcome:
            query, params = "SELECT COUNT(*) as c FROM responses WHERE outcome=?", (outcome,)
        else:
            query, params = "SELECT COUNT(*) as c FROM responses", ()
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
            return row["c"] if row else 0

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        oracle_index: int | None = None,
        flight: str | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, oracle_index, flight, message, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (event_type, oracle_index, flight, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    oracle_index=row["oracle_index"],
                    flight=row["flight"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]
