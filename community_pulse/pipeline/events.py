"""
Inbound provider events - message, membership, voice and reset notices.

Events are applied immediately, independent of the polling cycle. Each
source has its own FIFO queue and worker task, so events for one source
are applied in arrival order under that source's cache lock while
different sources proceed in parallel. ``submit()`` only enqueues; it
never waits for a fetch cycle.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import structlog

from community_pulse.broadcast.broadcaster import (
    TOPIC_ACTIVITY_UPDATED,
    TOPIC_MEMBER_UPDATED,
    TOPIC_VOICE_UPDATED,
)
from community_pulse.cache.schemas import RESTRICTED
from community_pulse.observability.logging import source_context
from community_pulse.observability.metrics import get_metrics
from community_pulse.observability.tracing import annotate, get_tracer, traced
from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.pipeline.views import voice_view
from community_pulse.trackers.schemas import VoiceStateChange

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

EventType = Literal["message", "member_join", "member_leave", "voice_state", "activity_reset"]

MEMBERSHIP_EVENTS = frozenset({"member_join", "member_leave"})


@dataclass(frozen=True)
class InboundEvent:
    """
    One notification from the upstream provider.

    Attributes:
        type: Event kind.
        source_id: Registry id the event belongs to.
        user_id: Acting user (message, membership, voice).
        channel_id: Text channel of a message.
        is_bot: Messages from bots are not counted.
        member_count: Member count reported with a membership event.
        voice: Before/after presence for ``voice_state``.
    """

    type: EventType
    source_id: str
    user_id: str | None = None
    username: str = ""
    channel_id: str | None = None
    is_bot: bool = False
    member_count: int | None = None
    voice: VoiceStateChange | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InboundEventRouter:
    """
    Per-source serialized application of inbound events.

    Args:
        pipeline: Pipeline owning the cache, trackers and broadcaster.
        refresh_on_membership_change: After a join/leave, schedule a
            single-source refresh so counts catch up before the next cycle.
    """

    def __init__(
        self,
        pipeline: RefreshPipeline,
        refresh_on_membership_change: bool = True,
    ):
        self._pipeline = pipeline
        self._refresh_on_membership = refresh_on_membership_change
        self._queues: dict[str, asyncio.Queue[InboundEvent]] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Events queued and not yet applied, across all sources."""
        return sum(q.qsize() for q in self._queues.values())

    async def start(self) -> None:
        self._running = True
        logger.info("Inbound event router started")

    async def stop(self) -> None:
        """Cancel workers and scheduled refreshes. Queued events are dropped."""
        self._running = False
        tasks = [*self._workers.values(), *self._background]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
        self._background.clear()
        logger.info("Inbound event router stopped")

    def submit(self, event: InboundEvent) -> None:
        """
        Queue an event for its source.

        Raises:
            NotFoundError: Unknown source id.
            RuntimeError: Router not started.
        """
        self._pipeline.registry.require(event.source_id)
        if not self._running:
            raise RuntimeError("Inbound event router is not running")
        self._queue_for(event.source_id).put_nowait(event)

    async def drain(self) -> None:
        """Wait until every queued event has been applied."""
        await asyncio.gather(*(q.join() for q in list(self._queues.values())))

    def _queue_for(self, source_id: str) -> asyncio.Queue[InboundEvent]:
        queue = self._queues.get(source_id)
        if queue is None:
            queue = self._queues[source_id] = asyncio.Queue()
            self._workers[source_id] = asyncio.create_task(
                self._worker(source_id, queue), name=f"inbound-events-{source_id}",
            )
        return queue

    async def _worker(self, source_id: str, queue: asyncio.Queue[InboundEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                with source_context(source_id):
                    await self.apply(event)
            except Exception:
                logger.exception(
                    "Inbound event failed", source_id=source_id, event_type=event.type,
                )
            finally:
                queue.task_done()

    async def apply(self, event: InboundEvent) -> dict[str, Any] | None:
        """
        Apply one event under its source lock and push the resulting delta.

        Returns:
            The pushed payload, or None when the event was ignored.
        """
        pipeline = self._pipeline
        source_id = event.source_id
        descriptor = pipeline.registry.require(source_id)

        async with pipeline.cache.lock(source_id):
            with traced(tracer, "inbound.event", {"source_id": source_id, "event_type": event.type}) as span:
                topic, payload = self._mutate(event)
                annotate(span, topic=topic, ignored=topic is None)
                if topic is None:
                    return None
                if descriptor.is_private and "member_count" in payload:
                    payload["member_count"] = RESTRICTED
                get_metrics().record_inbound_event(event.type)
                await pipeline.broadcaster.broadcast(topic, payload, source_id=source_id)

        if event.type in MEMBERSHIP_EVENTS and self._refresh_on_membership:
            self._schedule_refresh(source_id)
        return payload

    def _mutate(self, event: InboundEvent) -> tuple[str | None, dict[str, Any]]:
        trackers = self._pipeline.trackers
        source_id = event.source_id

        if event.type == "message":
            if event.is_bot or event.user_id is None:
                return None, {}
            state = trackers.activity.record_message(
                source_id, event.user_id, event.channel_id or "",
            )
            return TOPIC_ACTIVITY_UPDATED, {"source_id": source_id, **state.summary()}

        if event.type == "activity_reset":
            state = trackers.activity.reset_activity(source_id)
            return TOPIC_ACTIVITY_UPDATED, {"source_id": source_id, **state.summary()}

        if event.type in MEMBERSHIP_EVENTS:
            growth_event = "join" if event.type == "member_join" else "leave"
            member_count = event.member_count
            if member_count is None:
                member_count = self._estimate_member_count(source_id, growth_event)
            if member_count is not None:
                trackers.growth.record_growth(
                    source_id, member_count, event=growth_event, timestamp=event.timestamp,
                )
            return TOPIC_MEMBER_UPDATED, {
                "source_id": source_id,
                "event": growth_event,
                "user_id": event.user_id,
                "member_count": member_count,
            }

        if event.type == "voice_state":
            if event.voice is None:
                return None, {}
            voice_event = trackers.voice.apply_voice_event(
                source_id, event.voice, timestamp=event.timestamp,
            )
            if voice_event is None:
                return None, {}
            self._pipeline.restamp_voice(source_id)
            descriptor = self._pipeline.registry.require(source_id)
            payload = voice_view(descriptor, trackers)
            if not descriptor.is_private:
                payload["event"] = voice_event.to_dict()
            return TOPIC_VOICE_UPDATED, payload

        logger.warning("Unknown inbound event type", event_type=event.type)
        return None, {}

    def _estimate_member_count(self, source_id: str, growth_event: str) -> int | None:
        """Derive a count from the last known sample when the event carries none."""
        window = self._pipeline.trackers.growth.growth_window(source_id, 1)
        if window:
            last = window[-1].member_count
        else:
            snapshot = self._pipeline.cache.get(source_id)
            if snapshot is None or snapshot.raw is None:
                return None
            last = snapshot.raw.member_count
        return last + 1 if growth_event == "join" else max(0, last - 1)

    def _schedule_refresh(self, source_id: str) -> None:
        task = asyncio.create_task(
            self._refresh(source_id), name=f"membership-refresh-{source_id}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh(self, source_id: str) -> None:
        try:
            await self._pipeline.refresh_source(source_id)
        except Exception as e:
            logger.warning(
                "Membership-triggered refresh failed", source_id=source_id, error=str(e),
            )
