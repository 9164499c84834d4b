"""Oracle responder - answers OracleRequest events for our assigned indexes."""

from __future__ import annotations

import logging
import random
from typing import Iterable

from flight_oracle.interfaces.store import StateStore
from flight_oracle.interfaces.submitter import ResponseSubmitter
from flight_oracle.interfaces.subscription import EventSubscription
from flight_oracle.models.events import OracleRequestEvent
from flight_oracle.models.records import OracleResponse, ResponderStats, SubmissionResult

log = logging.getLogger(__name__)

# Status codes an oracle may report, drawn uniformly
STATUS_CODES = tuple(range(6))


class OracleResponder:
    """Matches requests against our index set and submits one response per match.

    Events are handled strictly one at a time. Nothing is deduplicated: an
    event delivered twice is answered twice.
    """

    def __init__(
        self,
        submitter: ResponseSubmitter,
        store: StateStore,
        indexes: Iterable[int],
        rng: random.Random | None = None,
    ) -> None:
        self._submitter = submitter
        self._store = store
        self._indexes = tuple(indexes)
        self._rng = rng or random.Random()
        self.stats = ResponderStats()

    @property
    def indexes(self) -> tuple[int, ...]:
        return self._indexes

    def matching_indexes(self, event: OracleRequestEvent) -> list[int]:
        return [i for i in self._indexes if i == event.index]

    def make_response(self, index: int, event: OracleRequestEvent) -> OracleResponse:
        return OracleResponse(
            index=index,
            airline=event.airline,
            flight=event.flight,
            timestamp=event.timestamp,
            status_code=self._rng.choice(STATUS_CODES),
        )

    async def handle_event(self, event: OracleRequestEvent) -> list[SubmissionResult]:
        """Answer one request. Returns the result of every submission made."""
        self.stats.events_seen += 1
        matches = self.matching_indexes(event)
        if not matches:
            log.debug("Ignoring OracleRequest index=%d flight=%s", event.index, event.flight)
            return []

        self.stats.events_matched += 1
        log.info(
            "OracleRequest index=%d airline=%s flight=%s timestamp=%d (block %d)",
            event.index, event.airline, event.flight, event.timestamp, event.block_number,
        )

        results: list[SubmissionResult] = []
        for index in matches:
            response = self.make_response(index, event)
            result = await self._submitter.submit(response)
            results.append(result)
            await self._record(result, event)
        return results

    async def _record(self, result: SubmissionResult, event: OracleRequestEvent) -> None:
        await self._store.save_response(result, event)
        r = result.response
        if result.accepted:
            self.stats.responses_accepted += 1
            await self._store.log_activity(
                "response_submitted",
                f"Status {r.status_code} for {r.flight} @ {r.timestamp} (tx {result.tx_hash})",
                oracle_index=r.index,
                flight=r.flight,
            )
            return

        kind = result.error_kind or "unknown"
        self.stats.record_failure(kind)
        log.error(
            "Response for index=%d flight=%s not accepted: outcome=%s kind=%s retryable=%s",
            r.index, r.flight, result.outcome.value, kind, result.retryable,
        )
        await self._store.log_activity(
            "submission_failed",
            f"{result.outcome.value}/{kind}: {result.error or 'no detail'}",
            oracle_index=r.index,
            flight=r.flight,
        )

    async def run(self, subscription: EventSubscription) -> None:
        """Consume the subscription until it is closed.

        An event is acknowledged once handled, whatever the submission
        outcome. If handling raises, the event is left unacknowledged and
        the loop moves on.
        """
        log.info("Listening for OracleRequest events (indexes: %s)", list(self._indexes))
        async for event in subscription:
            try:
                await self.handle_event(event)
            except Exception as exc:
                self.stats.event_errors += 1
                log.error(
                    "Failed to handle OracleRequest at block %d: %s",
                    event.block_number, exc, exc_info=True,
                )
                await self._store.log_activity(
                    "event_error", str(exc), oracle_index=event.index, flight=event.flight,
                )
                continue

            await subscription.ack(event)
            position = await subscription.get_cursor()
            if position is not None:
                await self._store.set_cursor(*position)
