"""Tests for inbound event application."""

import asyncio
import json

import pytest

from community_pulse.broadcast.broadcaster import (
    TOPIC_ACTIVITY_UPDATED,
    TOPIC_MEMBER_UPDATED,
    TOPIC_VOICE_UPDATED,
)
from community_pulse.cache.schemas import RESTRICTED
from community_pulse.errors import NotFoundError
from community_pulse.pipeline.events import InboundEvent, InboundEventRouter
from community_pulse.trackers.schemas import VoiceChannelRef, VoiceStateChange


@pytest.fixture
def router(pipeline) -> InboundEventRouter:
    return InboundEventRouter(pipeline, refresh_on_membership_change=False)


def _frames(ws) -> list[dict]:
    return [json.loads(c.args[0]) for c in ws.send_text.await_args_list]


def _join(source_id: str, user_id: str, channel: str = "v9") -> InboundEvent:
    return InboundEvent(
        type="voice_state",
        source_id=source_id,
        voice=VoiceStateChange(
            user_id=user_id,
            username=user_id,
            after=VoiceChannelRef(channel_id=channel, name="Lounge"),
        ),
    )


class TestApply:
    async def test_message_counts(self, router, pipeline):
        payload = await router.apply(
            InboundEvent(type="message", source_id="ALPHA", user_id="u1", channel_id="c1"),
        )

        assert payload["total_messages"] == 1
        assert payload["active_users"] == 1
        assert pipeline.trackers.activity.state("ALPHA").channel_activity == {"c1": 1}

    async def test_bot_message_ignored(self, router, pipeline, ws_factory):
        ws = ws_factory()
        await pipeline.broadcaster.connect(ws, dict)

        payload = await router.apply(
            InboundEvent(type="message", source_id="ALPHA", user_id="bot", is_bot=True),
        )

        assert payload is None
        assert pipeline.trackers.activity.state("ALPHA").total_messages == 0
        assert len(_frames(ws)) == 1

    async def test_activity_reset(self, router, pipeline):
        for i in range(3):
            await router.apply(InboundEvent(type="message", source_id="ALPHA", user_id=f"u{i}"))

        payload = await router.apply(InboundEvent(type="activity_reset", source_id="ALPHA"))

        assert payload["total_messages"] == 0
        assert payload["active_users"] == 0

    async def test_join_with_count(self, router, pipeline):
        payload = await router.apply(
            InboundEvent(type="member_join", source_id="ALPHA", user_id="u1", member_count=1001),
        )

        assert payload["member_count"] == 1001
        sample = pipeline.trackers.growth.growth_window("ALPHA")[-1]
        assert sample.member_count == 1001
        assert sample.event == "join"

    async def test_membership_count_estimated(self, router, pipeline):
        await pipeline.run_cycle()

        joined = await router.apply(InboundEvent(type="member_join", source_id="BRAVO", user_id="u1"))
        left = await router.apply(InboundEvent(type="member_leave", source_id="BRAVO", user_id="u2"))

        assert joined["member_count"] == 201
        assert left["member_count"] == 200

    async def test_membership_without_history(self, router):
        payload = await router.apply(InboundEvent(type="member_leave", source_id="BRAVO", user_id="u1"))

        assert payload["event"] == "leave"
        assert payload["member_count"] is None

    async def test_private_membership_masked(self, router, ws_factory, pipeline):
        ws = ws_factory()
        await pipeline.broadcaster.connect(ws, dict)

        await router.apply(
            InboundEvent(type="member_join", source_id="SECRET", user_id="u1", member_count=51),
        )

        frame = _frames(ws)[-1]
        assert frame["type"] == TOPIC_MEMBER_UPDATED
        assert frame["data"]["member_count"] == RESTRICTED

    async def test_voice_event_restamps_cache(self, router, pipeline, ws_factory):
        await pipeline.run_cycle()
        ws = ws_factory()
        await pipeline.broadcaster.connect(ws, dict, source_id="ALPHA")

        payload = await router.apply(_join("ALPHA", "d"))

        assert payload["total_voice_members"] == 4
        assert payload["event"]["action"] == "join"
        cached = pipeline.cache.get("ALPHA")
        assert cached.total_voice_occupants == 4
        assert cached.peak_voice_occupancy == 4
        assert _frames(ws)[-1]["type"] == TOPIC_VOICE_UPDATED

    async def test_voice_event_on_private_source(self, router, pipeline):
        payload = await router.apply(_join("SECRET", "d"))

        assert payload["total_voice_members"] == RESTRICTED
        assert "event" not in payload
        assert pipeline.trackers.voice.state("SECRET").total_occupants == 1

    async def test_voice_noop_ignored(self, router):
        same = VoiceChannelRef(channel_id="v1", name="Lounge")
        event = InboundEvent(
            type="voice_state",
            source_id="ALPHA",
            voice=VoiceStateChange(user_id="a", before=same, after=same),
        )

        assert await router.apply(event) is None

    async def test_unknown_source(self, router):
        with pytest.raises(NotFoundError):
            await router.apply(InboundEvent(type="message", source_id="NOPE", user_id="u1"))


class TestQueueing:
    async def test_submit_requires_running(self, router):
        with pytest.raises(RuntimeError):
            router.submit(InboundEvent(type="message", source_id="ALPHA", user_id="u1"))

    async def test_submit_unknown_source(self, router):
        await router.start()
        with pytest.raises(NotFoundError):
            router.submit(InboundEvent(type="message", source_id="NOPE", user_id="u1"))
        await router.stop()

    async def test_events_applied_in_order(self, router, pipeline, ws_factory):
        ws = ws_factory()
        await pipeline.broadcaster.connect(ws, dict, source_id="ALPHA")
        await router.start()

        for i in range(20):
            router.submit(InboundEvent(type="message", source_id="ALPHA", user_id=f"u{i}"))
        await router.drain()

        totals = [
            f["data"]["total_messages"] for f in _frames(ws)
            if f["type"] == TOPIC_ACTIVITY_UPDATED
        ]
        assert totals == list(range(1, 21))
        assert router.pending == 0
        await router.stop()

    async def test_event_not_blocked_by_cycle(self, router, pipeline, provider):
        provider.delay_seconds = 0.5
        await router.start()
        cycle = asyncio.create_task(pipeline.run_cycle())
        await asyncio.sleep(0.01)

        router.submit(InboundEvent(type="message", source_id="ALPHA", user_id="u1"))
        await asyncio.wait_for(router.drain(), timeout=0.2)

        assert pipeline.trackers.activity.state("ALPHA").total_messages == 1
        assert not cycle.done()
        await cycle
        await router.stop()

    async def test_membership_schedules_refresh(self, pipeline, provider):
        router = InboundEventRouter(pipeline, refresh_on_membership_change=True)
        await router.start()

        router.submit(InboundEvent(type="member_join", source_id="BRAVO", user_id="u1", member_count=201))
        await router.drain()
        for _ in range(10):
            if "BRAVO" in pipeline.cache:
                break
            await asyncio.sleep(0.01)

        assert provider.fetch_calls == ["2"]
        assert "BRAVO" in pipeline.cache
        await router.stop()

    async def test_stop_clears_workers(self, router):
        await router.start()
        router.submit(InboundEvent(type="message", source_id="ALPHA", user_id="u1"))
        await router.drain()
        await router.stop()

        assert not router.running
        assert router.pending == 0
