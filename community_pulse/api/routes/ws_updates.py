"""WebSocket endpoint for live snapshot updates.

Clients connect to ``/ws/updates`` (optionally ``?source_id=...`` to only
receive per-source events for one community; aggregate events are always
delivered). The first message is always ``initial_state``. Clients may send:

    {"type": "ping"}                                    -> pong
    {"type": "request_history", "source_id": "..."}     -> history
    {"type": "request_voice", "source_id": "..."}       -> voice_data

Replies go to the requesting socket only.
"""

import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from community_pulse.api.dependencies import get_service_or_none
from community_pulse.pipeline.views import history_view, initial_state, voice_view
from community_pulse.service import PulseService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _handle_client_message(ws: WebSocket, service: PulseService, raw: str) -> None:
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return
    if not isinstance(msg, dict):
        return

    broadcaster = service.broadcaster
    msg_type = msg.get("type")

    if msg_type == "ping":
        await broadcaster.send_to(ws, "pong", {})
        return

    if msg_type in ("request_history", "request_voice"):
        descriptor = service.registry.get(str(msg.get("source_id", "")))
        if descriptor is None:
            await broadcaster.send_to(
                ws, "error", {"message": f"Unknown source {msg.get('source_id')!r}"},
            )
            return
        if msg_type == "request_history":
            await broadcaster.send_to(ws, "history", history_view(descriptor, service.trackers))
        else:
            await broadcaster.send_to(ws, "voice_data", voice_view(descriptor, service.trackers))


@router.websocket("/ws/updates")
async def ws_updates(
    ws: WebSocket,
    source_id: str | None = Query(default=None),
) -> None:
    """Push channel: initial state, then live events."""
    service = get_service_or_none()
    if service is None:
        await ws.close(code=1011, reason="Service not available")
        return

    if not service.settings.ws_updates_enabled:
        await ws.close(code=1008, reason="WebSocket updates not enabled")
        return

    if source_id is not None and source_id not in service.registry:
        await ws.close(code=1008, reason=f"Unknown source: {source_id}")
        return

    await ws.accept()

    broadcaster = service.broadcaster
    connected = await broadcaster.connect(
        ws,
        initial_state=lambda: initial_state(service.registry, service.cache),
        source_id=source_id,
    )
    if not connected:
        await ws.close(code=1008, reason="Max connections reached")
        return

    try:
        while True:
            try:
                raw = await ws.receive_text()
            except WebSocketDisconnect:
                break
            await _handle_client_message(ws, service, raw)
    finally:
        broadcaster.disconnect(ws)
