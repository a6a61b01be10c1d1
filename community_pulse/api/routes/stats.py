"""Aggregate endpoints across all sources."""

from fastapi import APIRouter, Depends

from community_pulse.api.dependencies import get_service
from community_pulse.api.models import StatsResponse, VoiceResponse
from community_pulse.pipeline.views import voice_overview
from community_pulse.service import PulseService

router = APIRouter()


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Aggregate counts, average health and role breakdown",
)
async def get_stats(service: PulseService = Depends(get_service)) -> StatsResponse:
    return StatsResponse(data=service.pipeline.aggregate_stats())


@router.get(
    "/voice",
    response_model=VoiceResponse,
    summary="Voice totals across all sources",
)
async def get_voice_overview(service: PulseService = Depends(get_service)) -> VoiceResponse:
    return VoiceResponse(data=voice_overview(service.registry, service.trackers))
