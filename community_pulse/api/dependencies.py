"""
Dependency injection for FastAPI endpoints.

The running PulseService is registered by the app lifespan; endpoints
reach its components through the getters below.
"""

from fastapi import HTTPException, status

from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.service import PulseService

_service: PulseService | None = None


def set_service(service: PulseService | None) -> None:
    """Register (or clear) the process-wide service."""
    global _service
    _service = service


def get_service() -> PulseService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return _service


def get_pipeline() -> RefreshPipeline:
    return get_service().pipeline


def get_service_or_none() -> PulseService | None:
    """WebSocket handlers cannot turn HTTPException into a response."""
    return _service
