"""Tests for ChangeBroadcaster - connections, filtering, ordering and heartbeats."""

import asyncio
import json
from unittest.mock import AsyncMock

from community_pulse.broadcast.broadcaster import (
    TOPIC_INITIAL_STATE,
    TOPIC_SOURCE_UPDATED,
    TOPIC_STATS_UPDATED,
    ChangeBroadcaster,
    ClientConnection,
    encode_message,
)
from community_pulse.broadcast.config import BroadcastConfig


def _frames(ws) -> list[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.await_args_list]


def _broadcaster(**kwargs) -> ChangeBroadcaster:
    return ChangeBroadcaster(BroadcastConfig(**kwargs))


class TestConnect:
    async def test_initial_state_sent_on_connect(self, ws_factory):
        broadcaster = _broadcaster()
        ws = ws_factory()

        assert await broadcaster.connect(ws, lambda: {"sources": []}) is True

        frames = _frames(ws)
        assert frames[0]["type"] == TOPIC_INITIAL_STATE
        assert frames[0]["data"] == {"sources": []}
        assert broadcaster.active_connections == 1

    async def test_max_connections(self, ws_factory):
        broadcaster = _broadcaster(max_connections=1)

        assert await broadcaster.connect(ws_factory(), dict) is True
        assert await broadcaster.connect(ws_factory(), dict) is False
        assert broadcaster.active_connections == 1

    async def test_failed_initial_push_unregisters(self, ws_factory):
        broadcaster = _broadcaster()
        ws = ws_factory()
        ws.send_text.side_effect = RuntimeError("closed")

        assert await broadcaster.connect(ws, dict) is False
        assert broadcaster.active_connections == 0

    async def test_disconnect_idempotent(self, ws_factory):
        broadcaster = _broadcaster()
        ws = ws_factory()

        broadcaster.disconnect(ws)
        await broadcaster.connect(ws, dict)
        broadcaster.disconnect(ws)

        assert broadcaster.active_connections == 0


class TestBroadcast:
    async def test_no_clients(self):
        assert await _broadcaster().broadcast(TOPIC_STATS_UPDATED, {}) == 0

    async def test_source_filter(self, ws_factory):
        broadcaster = _broadcaster()
        everything, alpha_only, bravo_only = ws_factory(), ws_factory(), ws_factory()
        await broadcaster.connect(everything, dict)
        await broadcaster.connect(alpha_only, dict, source_id="ALPHA")
        await broadcaster.connect(bravo_only, dict, source_id="BRAVO")

        delivered = await broadcaster.broadcast(TOPIC_SOURCE_UPDATED, {"id": "ALPHA"}, source_id="ALPHA")
        aggregate = await broadcaster.broadcast(TOPIC_STATS_UPDATED, {"total_sources": 3})

        assert delivered == 2
        assert aggregate == 3
        assert [f["type"] for f in _frames(bravo_only)] == [TOPIC_INITIAL_STATE, TOPIC_STATS_UPDATED]

    async def test_failing_client_dropped(self, ws_factory):
        broadcaster = _broadcaster()
        good, bad = ws_factory(), ws_factory()
        await broadcaster.connect(good, dict)
        await broadcaster.connect(bad, dict)
        bad.send_text.side_effect = RuntimeError("gone")

        delivered = await broadcaster.broadcast(TOPIC_STATS_UPDATED, {})

        assert delivered == 1
        assert broadcaster.active_connections == 1

    async def test_slow_client_dropped_after_timeout(self, ws_factory):
        broadcaster = _broadcaster(send_timeout_seconds=0.05)
        slow = ws_factory()
        await broadcaster.connect(slow, dict)

        async def _hang(_message):
            await asyncio.sleep(1)

        slow.send_text.side_effect = _hang

        assert await broadcaster.broadcast(TOPIC_STATS_UPDATED, {}) == 0
        assert broadcaster.active_connections == 0

    async def test_send_to_single_client(self, ws_factory):
        broadcaster = _broadcaster()
        first, second = ws_factory(), ws_factory()
        await broadcaster.connect(first, dict)
        await broadcaster.connect(second, dict)

        assert await broadcaster.send_to(first, "pong", {}) is True

        assert [f["type"] for f in _frames(first)] == [TOPIC_INITIAL_STATE, "pong"]
        assert [f["type"] for f in _frames(second)] == [TOPIC_INITIAL_STATE]


class TestOrdering:
    async def test_initial_state_precedes_concurrent_broadcast(self):
        """A broadcast racing the initial push queues behind it on the client lock."""
        broadcaster = _broadcaster()
        sent: list[str] = []
        release = asyncio.Event()

        async def _send(message: str) -> None:
            if not sent:
                await release.wait()
            sent.append(json.loads(message)["type"])

        ws = AsyncMock()
        ws.send_text = AsyncMock(side_effect=_send)

        connect_task = asyncio.create_task(broadcaster.connect(ws, dict))
        await asyncio.sleep(0)
        broadcast_task = asyncio.create_task(
            broadcaster.broadcast(TOPIC_SOURCE_UPDATED, {"id": "ALPHA"}, source_id="ALPHA"),
        )
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(connect_task, broadcast_task)

        assert sent == [TOPIC_INITIAL_STATE, TOPIC_SOURCE_UPDATED]


class TestHeartbeat:
    async def test_heartbeat_sent(self, ws_factory):
        broadcaster = _broadcaster(heartbeat_interval=1)
        ws = ws_factory()
        await broadcaster.connect(ws, dict)

        await broadcaster.start()
        await asyncio.sleep(1.1)
        await broadcaster.stop()

        assert "heartbeat" in [f["type"] for f in _frames(ws)]
        assert broadcaster.active_connections == 0


def test_encode_message():
    payload = json.loads(encode_message("source_updated", {"id": "ALPHA"}))

    assert payload["type"] == "source_updated"
    assert payload["data"] == {"id": "ALPHA"}
    assert "timestamp" in payload


def test_filter_matching(ws_factory):
    everyone = ClientConnection(ws=ws_factory())
    alpha = ClientConnection(ws=ws_factory(), source_id="ALPHA")

    assert ChangeBroadcaster._matches_filter(everyone, "BRAVO")
    assert ChangeBroadcaster._matches_filter(alpha, None)
    assert ChangeBroadcaster._matches_filter(alpha, "ALPHA")
    assert not ChangeBroadcaster._matches_filter(alpha, "BRAVO")
