"""
Health check endpoint.

Always answers 200 while the process is up. Upstream trouble shows as
``status: degraded`` / ``upstream: disconnected``; cached data is still served.
"""

from fastapi import APIRouter, Depends

from community_pulse.api.dependencies import get_service
from community_pulse.api.models import HealthResponse, SchedulerStatus
from community_pulse.service import PulseService

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Liveness, upstream status, cache size, subscribers and scheduler state.",
)
async def health_check(service: PulseService = Depends(get_service)) -> HealthResponse:
    connected = service.provider.connected
    last_update = service.cache.last_update
    scheduler = service.scheduler

    return HealthResponse(
        status="healthy" if connected else "degraded",
        upstream="connected" if connected else "disconnected",
        upstream_error=None if connected else service.provider.last_error,
        provider=service.provider.name,
        uptime_seconds=round(service.uptime_seconds, 2),
        last_update=last_update.isoformat() if last_update else None,
        cache_size=service.cache.size,
        subscribers=service.broadcaster.active_connections,
        scheduler=SchedulerStatus(
            running=scheduler.running,
            interval_seconds=scheduler.interval,
            next_run_in_seconds=scheduler.seconds_until_next_run,
            cycle_in_flight=service.pipeline.is_running,
            cycles_completed=service.pipeline.cycles_completed,
        ),
    )
