"""Main daemon - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from web3 import AsyncWeb3

from flight_oracle.api.health import HealthServer
from flight_oracle.bindings.flight_surety import load_abi
from flight_oracle.chain import connector
from flight_oracle.chain.queries import OracleQueries
from flight_oracle.chain.submitter import Web3ResponseSubmitter
from flight_oracle.chain.subscription import Backoff, LogEventSubscription
from flight_oracle.config import validate_config
from flight_oracle.models.config import IndexSource, OracleConfig
from flight_oracle.responder import OracleResponder
from flight_oracle.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)


class OracleDaemon:
    """Flight status oracle.

    Listens for OracleRequest events, answers those matching our indexes,
    and serves the health endpoint alongside.

    Chain-facing components (``subscription``, ``submitter``, ``queries``)
    are built in ``start()`` once the node is reachable, unless they were
    set beforehand.
    """

    def __init__(self, cfg: OracleConfig) -> None:
        self._cfg = cfg
        self.w3: AsyncWeb3 | None = None
        self.store = SQLiteStateStore(cfg.db_path)
        self.health: HealthServer | None = (
            HealthServer(cfg.http_host, cfg.http_port) if cfg.http_enabled else None
        )
        self.subscription: LogEventSubscription | None = None
        self.submitter: Web3ResponseSubmitter | None = None
        self.queries: OracleQueries | None = None
        self.responder: OracleResponder | None = None
        self._connected = False
        self._stop_requested = False
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Initialize components and run until stopped."""
        validate_config(self._cfg)
        log.info("Starting flight_oracle daemon")
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Oracle contract: %s", self._cfg.response_contract)
        log.info("  Index source: %s", self._cfg.index_source.value)

        await self.store.initialize()
        try:
            if self.health:
                await self.health.start()
            if not await self._build_chain_components():
                return

            indexes = await self._resolve_indexes()
            self.responder = OracleResponder(self.submitter, self.store, indexes)

            saved = await self.store.get_cursor()
            if saved:
                self.subscription.set_cursor(*saved)
                log.info("Restored cursor: block %d, log %d", *saved)

            await self.store.log_activity(
                "daemon_started", f"Daemon started (indexes: {list(indexes)})",
            )
            if not self._stop_requested:
                await self.responder.run(self.subscription)
        finally:
            await self._shutdown()

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._stop_requested = True
        self._stopped.set()
        if self.subscription is not None:
            self.subscription.close()

    async def _build_chain_components(self) -> bool:
        """Connect and build whatever chain components were not injected.

        Returns False if a stop was requested before the node answered.
        """
        cfg = self._cfg
        if None not in (self.subscription, self.submitter, self.queries):
            return True

        self.w3 = connector.make_web3(cfg.rpc_url)
        if not await self._connect_with_retry():
            return False
        self._connected = True
        sender = await connector.resolve_sender(self.w3, cfg.private_key, cfg.account_index)

        oracle_abi = load_abi(cfg.oracle_abi_path or cfg.app_abi_path)
        app_abi = load_abi(cfg.app_abi_path)
        oracle_contract = connector.get_contract(self.w3, cfg.response_contract, oracle_abi)
        app_contract = connector.get_contract(
            self.w3, cfg.app_address or cfg.response_contract, app_abi,
        )

        if self.submitter is None:
            self.submitter = Web3ResponseSubmitter(
                self.w3,
                oracle_contract,
                sender,
                gas_limit=cfg.gas_limit,
                wait_for_receipt=cfg.wait_for_receipt,
                receipt_timeout=cfg.receipt_timeout,
            )
        if self.queries is None:
            self.queries = OracleQueries(self.w3, app_contract, sender)
        if self.subscription is None:
            self.subscription = LogEventSubscription(
                self.w3,
                oracle_contract,
                from_block=cfg.from_block,
                batch_size=cfg.batch_size,
                poll_interval=cfg.poll_interval,
                backoff=Backoff(cfg.error_backoff, cfg.max_backoff),
                reconnect=lambda: connector.reconnect(self.w3),
                on_error=self._on_stream_error,
            )
        return True

    async def _connect_with_retry(self) -> bool:
        """Keep trying the node until it answers; the health API stays up meanwhile."""
        backoff = Backoff(self._cfg.error_backoff, self._cfg.max_backoff)
        while not self._stop_requested:
            try:
                await connector.connect(self.w3)
                return True
            except Exception as exc:
                delay = backoff.next_delay()
                log.error(
                    "Node unreachable at %s (attempt %d): %s; retrying in %.1fs",
                    self._cfg.rpc_url, backoff.attempts, exc, delay,
                )
                await self.store.log_activity("connect_error", str(exc))
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        return False

    async def _resolve_indexes(self) -> tuple[int, ...]:
        if self._cfg.index_source == IndexSource.CONTRACT:
            indexes = await self.queries.get_my_indexes()
            log.info("Indexes assigned on-chain: %s", list(indexes))
            # getMyIndexes() may repeat an index; answer once per distinct value
            return tuple(dict.fromkeys(indexes))
        log.info("Using configured indexes: %s", list(self._cfg.indexes))
        return self._cfg.indexes

    async def _on_stream_error(self, exc: Exception) -> None:
        await self.store.log_activity("stream_error", f"transport: {exc}")

    async def _shutdown(self) -> None:
        if self.responder is not None:
            s = self.responder.stats
            log.info(
                "Handled %d events (%d matched): %d responses accepted, %d failed %s",
                s.events_seen, s.events_matched, s.responses_accepted,
                s.responses_failed, s.failures_by_kind or "",
            )
            await self.store.log_activity("daemon_stopped", "Daemon stopped")
        if self.health:
            await self.health.stop()
        if self._connected:
            try:
                await connector.disconnect(self.w3)
            except Exception as exc:
                log.warning("Disconnect failed: %s", exc)
        await self.store.close()
        log.info("Daemon shut down cleanly")


async def run_daemon(cfg: OracleConfig) -> None:
    """Entry point for running the daemon."""
    daemon = OracleDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
