"""Source endpoints - cached snapshots, history, voice and manual refresh."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from starlette.requests import Request

from community_pulse.api.dependencies import get_pipeline, get_service
from community_pulse.api.models import (
    ErrorResponse,
    HistoryResponse,
    RefreshResponse,
    SourceDetailResponse,
    SourcesListResponse,
    VoiceResponse,
)
from community_pulse.api.rate_limit import limiter
from community_pulse.cache.schemas import EnrichedSnapshot
from community_pulse.config.settings import get_settings as _get_settings
from community_pulse.errors import NotFoundError
from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.pipeline.fetcher import FetchResult
from community_pulse.pipeline.views import history_view, voice_view
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.service import PulseService

logger = structlog.get_logger(__name__)
router = APIRouter()

_refresh_running = False
_background_tasks: set[asyncio.Task] = set()


def _require_source(service: PulseService, source_id: str) -> SourceDescriptor:
    try:
        return service.registry.require(source_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _result_to_dict(result: FetchResult) -> dict:
    return {
        "id": result.source_id,
        "ok": result.ok,
        "restricted": result.restricted,
        "error": str(result.error) if result.error else None,
    }


@router.get(
    "/sources",
    response_model=SourcesListResponse,
    summary="List cached snapshots",
)
async def list_sources(
    service: PulseService = Depends(get_service),
) -> SourcesListResponse:
    """Serve the cache as-is. Freshness comes from the background scheduler."""
    last_update = service.cache.last_update
    return SourcesListResponse(
        data=[s.to_dict() for s in service.cache.get_all()],
        last_update=last_update.isoformat() if last_update else None,
        total_count=len(service.registry),
    )


@router.post(
    "/sources/refresh",
    response_model=RefreshResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Trigger a fetch cycle",
)
@limiter.limit(lambda: _get_settings().rate_limit_default)
async def refresh_sources(
    request: Request,
    wait: bool = Query(default=False, description="Block until the cycle has finished"),
    pipeline: RefreshPipeline = Depends(get_pipeline),
) -> RefreshResponse:
    global _refresh_running
    if _refresh_running or pipeline.is_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A fetch cycle is already running",
        )

    # Set flag before any await so a concurrent request sees it
    _refresh_running = True

    if wait:
        try:
            results = await pipeline.run_cycle(trigger="manual")
        finally:
            _refresh_running = False
        return RefreshResponse(
            status="completed",
            message="Fetch cycle completed",
            results=[_result_to_dict(r) for r in results],
        )

    async def _run() -> None:
        global _refresh_running
        try:
            await pipeline.run_cycle(trigger="manual")
        except Exception as e:
            logger.error("Manual fetch cycle failed", error=str(e), exc_info=True)
        finally:
            _refresh_running = False

    task = asyncio.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return RefreshResponse(status="started", message="Fetch cycle started in background")


@router.get(
    "/sources/{source_id}",
    response_model=SourceDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="One cached snapshot",
)
async def get_source(
    source_id: str,
    service: PulseService = Depends(get_service),
) -> SourceDetailResponse:
    descriptor = _require_source(service, source_id)
    snapshot = service.cache.get(source_id) or EnrichedSnapshot(descriptor=descriptor)
    return SourceDetailResponse(data=snapshot.to_dict())


@router.get(
    "/sources/{source_id}/history",
    response_model=HistoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Growth and health history",
)
async def get_history(
    source_id: str,
    service: PulseService = Depends(get_service),
) -> HistoryResponse:
    descriptor = _require_source(service, source_id)
    return HistoryResponse(data=history_view(descriptor, service.trackers))


@router.get(
    "/sources/{source_id}/voice",
    response_model=VoiceResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Voice occupancy and recent voice events",
)
async def get_voice(
    source_id: str,
    service: PulseService = Depends(get_service),
) -> VoiceResponse:
    descriptor = _require_source(service, source_id)
    return VoiceResponse(data=voice_view(descriptor, service.trackers))
