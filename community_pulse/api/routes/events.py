"""Inbound event intake - queues provider events for per-source application."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from starlette.requests import Request

from community_pulse.api.dependencies import get_service
from community_pulse.api.models import (
    ErrorResponse,
    InboundEventRequest,
    InboundEventResponse,
)
from community_pulse.api.rate_limit import limiter
from community_pulse.config.settings import get_settings as _get_settings
from community_pulse.errors import NotFoundError
from community_pulse.pipeline.events import InboundEvent
from community_pulse.service import PulseService
from community_pulse.trackers.schemas import VoiceChannelRef, VoiceStateChange

logger = structlog.get_logger(__name__)
router = APIRouter()


def _target_source(service: PulseService, body: InboundEventRequest) -> str:
    """Registry id for the event, mapping an upstream id when needed."""
    if body.source_id is not None:
        return body.source_id

    source_id = service.resolver.source_for(body.provider_id)
    if source_id is None:
        descriptor = service.registry.find_by_provider_id(body.provider_id)
        source_id = descriptor.id if descriptor else None
    if source_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No source is mapped to provider id {body.provider_id!r}",
        )
    return source_id


def _to_event(body: InboundEventRequest, source_id: str) -> InboundEvent:
    voice = None
    if body.voice is not None:
        voice = VoiceStateChange(
            user_id=body.user_id,
            username=body.username,
            before=VoiceChannelRef(**body.voice.before.model_dump()) if body.voice.before else None,
            after=VoiceChannelRef(**body.voice.after.model_dump()) if body.voice.after else None,
        )
    return InboundEvent(
        type=body.type,
        source_id=source_id,
        user_id=body.user_id,
        username=body.username,
        channel_id=body.channel_id,
        is_bot=body.is_bot,
        member_count=body.member_count,
        voice=voice,
    )


@router.post(
    "/events",
    response_model=InboundEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Submit an inbound provider event",
)
@limiter.limit(lambda: _get_settings().rate_limit_events)
async def submit_event(
    request: Request,
    body: InboundEventRequest,
    service: PulseService = Depends(get_service),
) -> InboundEventResponse:
    """Queue the event and return immediately; the push follows asynchronously."""
    source_id = _target_source(service, body)
    try:
        service.events.submit(_to_event(body, source_id))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return InboundEventResponse(source_id=source_id, type=body.type)
