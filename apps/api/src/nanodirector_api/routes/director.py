"""Director pipeline routes."""

from fastapi import APIRouter, HTTPException, status

from nanodirector_core_schemas import PanelTransfer
from nanodirector_api.deps import DirectorDep, JobsDep, Token
from nanodirector_api.schemas import (
    DirectorStateResponse,
    ErrorResponse,
    JobResponse,
    SelectRequest,
    UpdateScriptRequest,
    UpdateSettingsRequest,
    UpdateShotRequest,
    UpdateStyleRequest,
    job_to_response,
)
from nanodirector_services import DirectorService, JobType

router = APIRouter(prefix="/director", tags=["Director"])


def state_response(director: DirectorService) -> DirectorStateResponse:
    return DirectorStateResponse(
        state=director.state,
        display_state=director.display_state,
        phase=director.phase,
        busy=director.is_busy,
    )


def ensure_idle(director: DirectorService) -> None:
    if director.is_busy:
        raise HTTPException(
            status_code=409,
            detail=f"Director is busy ({director.phase.value})",
        )


@router.get(
    "",
    response_model=DirectorStateResponse,
    responses={401: {"model": ErrorResponse}},
)
async def get_director_state(director: DirectorDep, token: Token):
    """Get the project state and the derived view."""
    return state_response(director)


@router.put(
    "/settings",
    response_model=DirectorStateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def update_settings(request: UpdateSettingsRequest, director: DirectorDep, token: Token):
    """Update project settings.

    Changing the grid size discards the script, candidates and panels.
    """
    if request.project_name is not None:
        director.set_project_name(request.project_name)
    if request.story_idea is not None:
        director.set_story_idea(request.story_idea)
    if request.grid_size is not None:
        director.set_grid_size(request.grid_size)
    if request.candidate_count is not None:
        director.set_candidate_count(request.candidate_count)
    if request.aspect_ratio is not None:
        director.set_aspect_ratio(request.aspect_ratio)
    if request.resolution is not None or request.grid_resolution is not None:
        director.set_resolution(panels=request.resolution, grid=request.grid_resolution)
    if request.ref_images is not None:
        director.set_ref_images(request.ref_images)
    return state_response(director)


@router.put(
    "/style",
    response_model=DirectorStateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def update_style(request: UpdateStyleRequest, director: DirectorDep, token: Token):
    """Update style preferences.

    Append and override text are mutually exclusive; a rejected update
    leaves the preferences unchanged.
    """
    director.update_style(**request.model_dump(exclude_unset=True))
    return state_response(director)


@router.put(
    "/script",
    response_model=DirectorStateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def update_script(request: UpdateScriptRequest, director: DirectorDep, token: Token):
    """Edit the script title or logline."""
    director.edit_script(title=request.title, logline=request.logline)
    return state_response(director)


@router.delete(
    "/script",
    response_model=DirectorStateResponse,
    responses={401: {"model": ErrorResponse}},
)
async def clear_script(director: DirectorDep, token: Token):
    """Drop the script so the next generate writes a new one."""
    ensure_idle(director)
    director.clear_script()
    return state_response(director)


@router.put(
    "/shots/{index}",
    response_model=DirectorStateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def update_shot(index: int, request: UpdateShotRequest, director: DirectorDep, token: Token):
    """Edit a shot (0-based). The sheet prompt is recompiled on the next generate."""
    director.edit_shot(
        index,
        description=request.description,
        camera_angle=request.camera_angle,
        lighting=request.lighting,
    )
    return state_response(director)


@router.post(
    "/generate",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def generate(director: DirectorDep, jobs: JobsDep, token: Token):
    """Write the script (if needed) and generate candidate sheets.

    This is an async operation. Returns 202 with a job ID to poll for completion.
    """
    ensure_idle(director)
    state = director.state
    if not state.story_idea.strip():
        raise HTTPException(status_code=400, detail="Story idea is required")

    job = jobs.create_job(
        JobType.GENERATE,
        metadata={
            "idea": state.story_idea[:100] + "..." if len(state.story_idea) > 100 else state.story_idea,
            "grid_size": state.grid_size,
            "candidate_count": state.candidate_count,
        },
    )

    async def run_generate():
        candidates = await director.generate()
        return {"candidate_count": len(candidates)}

    jobs.start_job(job, run_generate())
    return job_to_response(job)


@router.post(
    "/select",
    response_model=DirectorStateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def select_candidate(request: SelectRequest, director: DirectorDep, token: Token):
    """Select the candidate sheet to direct."""
    director.select(request.index)
    return state_response(director)


@router.post(
    "/direct",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def direct(director: DirectorDep, jobs: JobsDep, token: Token):
    """Split the selected sheet and remaster each panel.

    This is an async operation. Returns 202 with a job ID to poll for completion.
    """
    ensure_idle(director)
    state = director.state
    if state.script is None or state.selected_grid_index is None:
        raise HTTPException(status_code=400, detail="Select a candidate before directing")

    job = jobs.create_job(
        JobType.DIRECT,
        total_steps=state.grid_size ** 2,
        metadata={"candidate": state.selected_grid_index},
    )

    async def run_direct():
        panels = await director.direct(on_progress=job.report)
        return {"panel_count": len(panels)}

    jobs.start_job(job, run_direct())
    return job_to_response(job)


@router.post(
    "/panels/{index}/transfer",
    response_model=PanelTransfer,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def transfer_panel(index: int, director: DirectorDep, token: Token):
    """Package a final panel (0-based) with its extracted prompt for an editor."""
    return await director.send_to_editor(index)
