"""API request/response schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from nanodirector_core_schemas import (
    AspectRatio,
    DisplayState,
    HistoryItem,
    ImageResolution,
    PipelinePhase,
    ProjectState,
    VisualStyle,
)
from nanodirector_services import Destination, Job, SaveResult


# Error responses
class ErrorDetail(BaseModel):
    """Error detail."""

    code: str
    message: str
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response."""

    error: ErrorDetail


# Job responses
class JobResponse(BaseModel):
    """Job response for async operations."""

    job_id: str
    type: str
    status: str
    created_at: datetime
    metadata: dict = Field(default_factory=dict)


class JobStatusResponse(BaseModel):
    """Job status response."""

    id: str
    type: str
    status: str
    result: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    completed_steps: int = 0
    total_steps: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: dict = Field(default_factory=dict)


def job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        job_id=job.id,
        type=job.type.value,
        status=job.status.value,
        created_at=job.created_at,
        metadata=job.metadata,
    )


def job_to_status(job: Job) -> JobStatusResponse:
    return JobStatusResponse(
        id=job.id,
        type=job.type.value,
        status=job.status.value,
        result=job.result,
        error=job.error,
        error_code=job.error_code,
        completed_steps=job.completed_steps,
        total_steps=job.total_steps,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        metadata=job.metadata,
    )


# Director requests/responses
class DirectorStateResponse(BaseModel):
    """Current project with its derived view."""

    state: ProjectState
    display_state: DisplayState
    phase: PipelinePhase
    busy: bool


class UpdateSettingsRequest(BaseModel):
    """Project settings; omitted fields are left unchanged."""

    project_name: Optional[str] = Field(None, max_length=100)
    story_idea: Optional[str] = None
    grid_size: Optional[int] = None
    candidate_count: Optional[int] = None
    aspect_ratio: Optional[AspectRatio] = None
    resolution: Optional[ImageResolution] = None
    grid_resolution: Optional[ImageResolution] = None
    ref_images: Optional[list[str]] = None


class UpdateStyleRequest(BaseModel):
    """Style preferences; omitted fields are left unchanged."""

    mode: Optional[VisualStyle] = None
    custom_positive: Optional[str] = None
    custom_append: Optional[str] = None
    custom_override: Optional[str] = None
    custom_negative: Optional[str] = None


class UpdateScriptRequest(BaseModel):
    """Script title/logline edit."""

    title: Optional[str] = None
    logline: Optional[str] = None


class UpdateShotRequest(BaseModel):
    """Shot edit request."""

    description: Optional[str] = None
    camera_angle: Optional[str] = None
    lighting: Optional[str] = None


class SelectRequest(BaseModel):
    """Candidate selection (0-based)."""

    index: int = Field(..., ge=0)


class HistoryEntryResponse(BaseModel):
    """History entry summary."""

    id: str
    timestamp: datetime
    title: Optional[str] = None
    grid_size: int
    panel_count: int
    style: VisualStyle


def history_to_response(entry: HistoryItem) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        timestamp=entry.timestamp,
        title=entry.script.title if entry.script else None,
        grid_size=entry.grid_size,
        panel_count=len(entry.final_images),
        style=entry.style_prefs.mode,
    )


# Persistence requests/responses
class SaveRequest(BaseModel):
    """Explicit save request."""

    destination: Optional[Destination] = None
    path: Optional[str] = Field(None, description="Project folder (local) or target file (download)")


class SaveResponse(BaseModel):
    """What a save did."""

    destination: Optional[Destination] = None
    saved: bool
    location: Optional[str] = None
    reason: Optional[str] = None


def save_to_response(result: SaveResult) -> SaveResponse:
    return SaveResponse(
        destination=result.destination,
        saved=result.saved,
        location=result.location,
        reason=result.reason,
    )


class LoadPathRequest(BaseModel):
    """Local folder or manifest file to load."""

    path: str = Field(..., min_length=1)


class LoadResponse(BaseModel):
    """Result of a load."""

    loaded: bool
    destination: Optional[Destination] = None
    project_name: Optional[str] = None


class CloudSessionRequest(BaseModel):
    """Cloud sign-in with an OAuth access token."""

    access_token: str = Field(..., min_length=1)
    user: dict = Field(default_factory=dict)


class CloudSessionResponse(BaseModel):
    """Cloud sign-in status."""

    authenticated: bool
    user: dict = Field(default_factory=dict)


class AutosaveRequest(BaseModel):
    """Autosave switch and destination."""

    enabled: Optional[bool] = None
    destination: Optional[Destination] = None


class AutosaveResponse(BaseModel):
    """Autosave status."""

    enabled: bool
    destination: Optional[Destination] = None
    armed: bool
