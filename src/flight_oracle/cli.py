"""CLI entry point for the flight_oracle daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from web3 import AsyncWeb3

from flight_oracle.bindings.flight_surety import load_abi
from flight_oracle.chain import connector
from flight_oracle.chain.queries import OracleQueries, format_eth
from flight_oracle.config import ConfigError, load_config, validate_config
from flight_oracle.daemon import run_daemon
from flight_oracle.models.config import OracleConfig
from flight_oracle.storage.sqlite import SQLiteStateStore


def _load_valid_config(ctx: click.Context) -> OracleConfig:
    """Load config and exit with an error if it cannot drive the oracle."""
    try:
        cfg = load_config(ctx.obj["config_path"])
        validate_config(cfg)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    return cfg


async def _open_queries(cfg: OracleConfig) -> tuple[AsyncWeb3, OracleQueries]:
    w3 = connector.make_web3(cfg.rpc_url)
    await connector.connect(w3)
    sender = await connector.resolve_sender(w3, cfg.private_key, cfg.account_index)
    contract = connector.get_contract(
        w3, cfg.app_address or cfg.response_contract, load_abi(cfg.app_abi_path),
    )
    return w3, OracleQueries(w3, contract, sender)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """flight_oracle - FlightSurety oracle responder."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if verbose:
        level = logging.DEBUG
    else:
        try:
            level_name = load_config(config_path).log_level
        except ConfigError:
            level_name = "info"
        level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the oracle daemon."""
    cfg = _load_valid_config(ctx)
    click.echo(f"Starting flight_oracle (contract: {cfg.response_contract})")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show effective configuration."""
    try:
        cfg = load_config(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"RPC URL:      {cfg.rpc_url}")
    click.echo(f"App:          {cfg.app_address or '(not set)'}")
    click.echo(f"Oracle:       {cfg.oracle_address or '(same as app)'}")
    click.echo(f"From block:   {cfg.from_block}")
    click.echo(f"Gas limit:    {cfg.gas_limit}")
    click.echo(f"Index source: {cfg.index_source.value}")
    click.echo(f"Indexes:      {', '.join(str(i) for i in cfg.indexes)}")
    http = f"http://{cfg.http_host}:{cfg.http_port}/api" if cfg.http_enabled else "(disabled)"
    click.echo(f"Health API:   {http}")
    click.echo(f"DB path:      {cfg.db_path}")
    if cfg.private_key:
        click.echo("Signer:       ***private key configured***")
    else:
        click.echo(f"Signer:       node account #{cfg.account_index}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Query account balance, registration fee and on-chain indexes."""
    cfg = _load_valid_config(ctx)

    async def _info():
        w3, queries = await _open_queries(cfg)
        try:
            click.echo(f"Address:    {queries.address}")
            balance = await queries.get_balance()
            click.echo(f"Balance:    {balance} wei ({format_eth(balance)})")

            fee = await queries.get_registration_fee()
            if fee is not None:
                click.echo(f"Reg. fee:   {fee} wei ({format_eth(fee)})")

            try:
                indexes = await queries.get_my_indexes()
            except Exception as exc:
                click.echo("Oracle:     NOT REGISTERED")
                click.echo(f"  ({exc})")
                click.echo("  Run 'flight-oracle register' to register this account.")
            else:
                click.echo("Oracle:     REGISTERED")
                click.echo(f"  Indexes:  {', '.join(str(i) for i in indexes)}")
        finally:
            await connector.disconnect(w3)

    asyncio.run(_info())


# ── Registration ───────────────────────────────────────


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def register(ctx: click.Context, yes: bool) -> None:
    """Register this account as an oracle, paying REGISTRATION_FEE."""
    cfg = _load_valid_config(ctx)

    async def _register():
        w3, queries = await _open_queries(cfg)
        try:
            fee = await queries.get_registration_fee()
            if fee is None:
                click.echo("Error: could not read REGISTRATION_FEE from the contract.", err=True)
                sys.exit(1)
            balance = await queries.get_balance()

            click.echo(f"Registering oracle {queries.address}")
            click.echo(f"  Fee:      {fee} wei ({format_eth(fee)})")
            click.echo(f"  Balance:  {balance} wei ({format_eth(balance)})")
            if balance < fee:
                click.echo(f"\nInsufficient balance! Need {fee - balance} more wei.", err=True)
                sys.exit(1)

            if not yes and not click.confirm("\nProceed with registration?"):
                click.echo("Cancelled.")
                return

            tx_hash = await queries.register_oracle(fee)
            click.echo(f"Registered (tx: {tx_hash})")
            indexes = await queries.get_my_indexes()
            click.echo(f"Assigned indexes: {', '.join(str(i) for i in indexes)}")
        finally:
            await connector.disconnect(w3)

    asyncio.run(_register())


# ── History ────────────────────────────────────────────


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of responses to show")
@click.pass_context
def responses(ctx: click.Context, limit: int) -> None:
    """Show recently submitted responses."""
    cfg = load_config(ctx.obj["config_path"])

    async def _responses():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            rows = await store.get_responses(limit)
            if not rows:
                click.echo("No responses submitted yet.")
                return
            for r in rows:
                detail = r.tx_hash or r.error_kind or ""
                click.echo(
                    f"  {r.created_at}  index={r.index} {r.flight}@{r.timestamp} "
                    f"status={r.status_code} {r.outcome} {detail}"
                )
        finally:
            await store.close()

    asyncio.run(_responses())


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of entries to show")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show the recent activity log."""
    cfg = load_config(ctx.obj["config_path"])

    async def _activity():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            for a in await store.get_recent_activity(limit):
                click.echo(f"  {a.created_at}  {a.event_type:<20} {a.message}")
        finally:
            await store.close()

    asyncio.run(_activity())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
