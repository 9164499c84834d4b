"""LogEventSubscription: windows, ordering, cursor resume, transport errors."""

from __future__ import annotations

import asyncio

import pytest
from web3 import Web3
from web3.datastructures import AttributeDict

from flight_oracle.chain.subscription import Backoff, parse_oracle_request

from tests.factories import make_request_event
from tests.mocks import ScriptedSubscription


async def collect(subscription, ack=True):
    received = []
    async for event in subscription:
        received.append(event)
        if ack:
            await subscription.ack(event)
    return received


# ── Windows ───────────────────────────────────────────────────────


async def test_catches_up_in_batch_windows():
    chain = [make_request_event(block_number=b) for b in (0, 3, 4, 7)]
    sub = ScriptedSubscription(chain, head=7, batch_size=3)

    received = await collect(sub)

    assert sub.windows == [(0, 2), (3, 5), (6, 7)]
    assert [e.block_number for e in received] == [0, 3, 4, 7]
    assert sub.next_block == 8


async def test_starts_at_from_block():
    chain = [make_request_event(block_number=b) for b in (1, 5, 9)]
    sub = ScriptedSubscription(chain, head=9, from_block=5)

    received = await collect(sub)

    assert [e.block_number for e in received] == [5, 9]


async def test_events_ordered_by_block_then_log_index():
    chain = [
        make_request_event(block_number=2, log_index=4),
        make_request_event(block_number=1, log_index=9),
        make_request_event(block_number=2, log_index=1),
    ]
    sub = ScriptedSubscription(chain, head=2)

    received = await collect(sub)

    assert [e.position for e in received] == [(1, 9), (2, 1), (2, 4)]


# ── Cursor ────────────────────────────────────────────────────────


async def test_resume_skips_acknowledged_events():
    """Restored cursor (3, 1) → block 3 refetched, only later logs delivered."""
    chain = [make_request_event(block_number=3, log_index=i) for i in range(3)]
    chain.append(make_request_event(block_number=4))
    sub = ScriptedSubscription(chain, head=4)
    sub.set_cursor(3, 1)

    received = await collect(sub)

    assert sub.windows[0][0] == 3
    assert [e.position for e in received] == [(3, 2), (4, 0)]
    assert await sub.get_cursor() == (4, 0)


async def test_ack_keeps_highest_position():
    sub = ScriptedSubscription([], head=0)
    await sub.ack(make_request_event(block_number=9, log_index=2))
    await sub.ack(make_request_event(block_number=5, log_index=0))
    assert await sub.get_cursor() == (9, 2)


async def test_cursor_unset_until_first_ack():
    chain = [make_request_event(block_number=1)]
    sub = ScriptedSubscription(chain, head=1)

    received = await collect(sub, ack=False)

    assert len(received) == 1
    assert await sub.get_cursor() is None


# ── Transport errors ──────────────────────────────────────────────


async def test_transport_error_retries_window_and_reconnects():
    errors: list[Exception] = []
    reconnects = []

    async def on_error(exc):
        errors.append(exc)

    async def reconnect():
        reconnects.append(True)

    chain = [make_request_event(block_number=0), make_request_event(block_number=1)]
    sub = ScriptedSubscription(
        chain, head=1, fail_times=2, on_error=on_error, reconnect=reconnect,
    )

    received = await collect(sub)

    assert [e.block_number for e in received] == [0, 1]
    assert sub.transport_errors == 2
    assert len(errors) == 2
    assert all(isinstance(e, ConnectionError) for e in errors)
    assert len(reconnects) == 2


async def test_failing_error_hook_does_not_stop_stream():
    async def on_error(exc):
        raise RuntimeError("store closed")

    chain = [make_request_event(block_number=0)]
    sub = ScriptedSubscription(chain, head=0, fail_times=1, on_error=on_error)

    received = await collect(sub)

    assert len(received) == 1


async def test_close_wakes_a_sleeping_stream():
    """close() ends iteration even while waiting out a long poll interval."""
    sub = ScriptedSubscription([], head=-1, poll_interval=3600)
    sub._latest_block = _constant(-1)

    task = asyncio.create_task(collect(sub))
    await asyncio.sleep(0.01)
    sub.close()

    assert await asyncio.wait_for(task, timeout=1) == []
    assert sub.closed


def _constant(value):
    async def _latest():
        return value
    return _latest


# ── Backoff ───────────────────────────────────────────────────────


def test_backoff_doubles_and_caps():
    backoff = Backoff(initial=1, maximum=5)
    assert [backoff.next_delay() for _ in range(5)] == [1, 2, 4, 5, 5]
    assert backoff.attempts == 5


def test_backoff_reset():
    backoff = Backoff(initial=0.5)
    backoff.next_delay()
    backoff.next_delay()
    backoff.reset()
    assert backoff.attempts == 0
    assert backoff.next_delay() == 0.5


# ── Decoding ──────────────────────────────────────────────────────


def test_parse_decoded_log():
    tx_hash = bytes.fromhex("ab" * 32)
    decoded = AttributeDict({
        "event": "OracleRequest",
        "args": AttributeDict({
            "index": 2,
            "airline": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
            "flight": "ND1309",
            "timestamp": 1_700_000_000,
        }),
        "blockNumber": 41,
        "logIndex": 3,
        "transactionHash": tx_hash,
    })

    event = parse_oracle_request(decoded)

    assert event.index == 2
    assert event.flight == "ND1309"
    assert event.timestamp == 1_700_000_000
    assert event.position == (41, 3)
    assert event.tx_hash == Web3.to_hex(tx_hash)


def test_parse_keeps_string_tx_hash():
    decoded = {
        "args": {"index": 1, "airline": "0xA", "flight": "F1", "timestamp": 5},
        "transactionHash": "0xfeed",
    }
    event = parse_oracle_request(decoded)
    assert event.tx_hash == "0xfeed"
    assert event.position == (0, 0)


def test_parse_rejects_missing_args():
    with pytest.raises(KeyError):
        parse_oracle_request({"blockNumber": 1})


async def test_cursor_held_behind_unacked_event():
    chain = [make_request_event(block_number=b) for b in (1, 2, 3)]
    sub = ScriptedSubscription(chain, head=3)

    async for event in sub:
        if event.block_number != 2:
            await sub.ack(event)

    assert sub.unacked == [(2, 0)]
    assert await sub.get_cursor() == (1, 0)


async def test_late_ack_releases_cursor():
    chain = [make_request_event(block_number=b) for b in (1, 2, 3)]
    sub = ScriptedSubscription(chain, head=3)
    skipped = []

    async for event in sub:
        if event.block_number == 2:
            skipped.append(event)
        else:
            await sub.ack(event)
    await sub.ack(skipped[0])

    assert sub.unacked == []
    assert await sub.get_cursor() == (3, 0)
