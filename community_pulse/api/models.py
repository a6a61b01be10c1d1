"""
Request and response models for the community-pulse API.

Snapshot bodies are passed through as plain dicts (``EnrichedSnapshot.to_dict``)
so the REST shapes and the push-channel payloads stay identical.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class ErrorResponse(BaseModel):
    """Error body returned for 4xx/5xx responses."""

    detail: str = Field(..., description="Error message")
    error_type: str | None = Field(default=None, description="Error category")


class SourcesListResponse(BaseModel):
    """All cached sources in registry order."""

    success: bool = True
    data: list[dict[str, Any]] = Field(default_factory=list)
    last_update: str | None = Field(
        default=None,
        description="When the last full fetch cycle finished (ISO 8601)",
    )
    total_count: int = Field(..., description="Number of registry entries")


class SourceDetailResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


class HistoryResponse(BaseModel):
    """Growth window (30), health window (168) and activity counters."""

    success: bool = True
    data: dict[str, Any]


class VoiceResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


class StatsResponse(BaseModel):
    """Aggregates over non-restricted counts."""

    success: bool = True
    data: dict[str, Any]


class RefreshResponse(BaseModel):
    status: Literal["started", "completed"] = Field(..., description="Cycle state")
    message: str
    results: list[dict[str, Any]] | None = Field(
        default=None,
        description="Per-source outcome (only when waited for)",
    )


class SchedulerStatus(BaseModel):
    running: bool
    interval_seconds: float
    next_run_in_seconds: float | None = None
    cycle_in_flight: bool = False
    cycles_completed: int = 0


class HealthResponse(BaseModel):
    """Liveness and component status."""

    status: Literal["healthy", "degraded"] = Field(
        ...,
        description="healthy when upstream is reachable, degraded otherwise",
    )
    upstream: Literal["connected", "disconnected"]
    upstream_error: str | None = Field(default=None, description="Last upstream failure while disconnected")
    provider: str
    uptime_seconds: float
    last_update: str | None = None
    cache_size: int = 0
    subscribers: int = 0
    scheduler: SchedulerStatus


class VoiceChannelRefModel(BaseModel):
    channel_id: str
    name: str = ""


class VoiceStateModel(BaseModel):
    before: VoiceChannelRefModel | None = None
    after: VoiceChannelRefModel | None = None


class InboundEventRequest(BaseModel):
    """An event pushed by the upstream gateway or a relay."""

    type: Literal["message", "member_join", "member_leave", "voice_state", "activity_reset"]
    source_id: str | None = Field(default=None, min_length=1, description="Registry id of the community")
    provider_id: str | None = Field(
        default=None,
        min_length=1,
        description="Upstream id, used when the sender does not know the registry id",
    )
    user_id: str | None = None
    username: str = ""
    channel_id: str | None = Field(default=None, description="Text channel of a message")
    is_bot: bool = False
    member_count: int | None = Field(default=None, ge=0)
    voice: VoiceStateModel | None = None

    @model_validator(mode="after")
    def _check_target(self) -> "InboundEventRequest":
        if self.source_id is None and self.provider_id is None:
            raise ValueError("Either source_id or provider_id is required")
        if self.type in ("message", "voice_state") and not self.user_id:
            raise ValueError(f"user_id is required for {self.type} events")
        if self.type == "voice_state" and self.voice is None:
            raise ValueError("voice is required for voice_state events")
        return self


class InboundEventResponse(BaseModel):
    status: Literal["queued"] = "queued"
    source_id: str
    type: str
