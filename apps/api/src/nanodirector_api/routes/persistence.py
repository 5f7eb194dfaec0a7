"""Save, load and autosave routes."""

from pathlib import Path

from fastapi import APIRouter

from nanodirector_storage import CloudFile
from nanodirector_api.deps import Token, WorkspaceDep
from nanodirector_api.schemas import (
    AutosaveRequest,
    AutosaveResponse,
    CloudSessionRequest,
    CloudSessionResponse,
    ErrorResponse,
    LoadPathRequest,
    LoadResponse,
    SaveRequest,
    SaveResponse,
    save_to_response,
)
from nanodirector_services import Workspace

router = APIRouter(prefix="/persistence", tags=["Persistence"])


def load_response(workspace: Workspace, loaded: bool) -> LoadResponse:
    return LoadResponse(
        loaded=loaded,
        destination=workspace.router.destination,
        project_name=workspace.director.state.project_name or None,
    )


@router.post(
    "/save",
    response_model=SaveResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def save_project(request: SaveRequest, workspace: WorkspaceDep, token: Token):
    """Save the project to the chosen (or given) destination.

    Local saves overwrite the project file; cloud saves create a new file.
    """
    path = Path(request.path) if request.path else None
    result = await workspace.save(request.destination, path=path)
    return save_to_response(result)


@router.post(
    "/load/local",
    response_model=LoadResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def load_local(request: LoadPathRequest, workspace: WorkspaceDep, token: Token):
    """Open a project folder; it becomes the save destination."""
    state = await workspace.open_local(Path(request.path))
    return load_response(workspace, state is not None)


@router.post(
    "/load/import",
    response_model=LoadResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def load_import(request: LoadPathRequest, workspace: WorkspaceDep, token: Token):
    """Import a single project file. The save destination is unchanged."""
    await workspace.import_file(Path(request.path))
    return load_response(workspace, True)


def session_response(workspace: Workspace) -> CloudSessionResponse:
    return CloudSessionResponse(
        authenticated=workspace.session.is_authenticated,
        user=workspace.session.user,
    )


@router.put(
    "/cloud/session",
    response_model=CloudSessionResponse,
    responses={401: {"model": ErrorResponse}},
)
async def cloud_sign_in(request: CloudSessionRequest, workspace: WorkspaceDep, token: Token):
    """Sign in to cloud storage with an OAuth access token."""
    workspace.session.sign_in(request.access_token, request.user)
    return session_response(workspace)


@router.delete(
    "/cloud/session",
    response_model=CloudSessionResponse,
    responses={401: {"model": ErrorResponse}},
)
async def cloud_sign_out(workspace: WorkspaceDep, token: Token):
    """Forget the cloud access token."""
    workspace.session.sign_out()
    return session_response(workspace)


@router.get(
    "/cloud",
    response_model=list[CloudFile],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def list_cloud(workspace: WorkspaceDep, token: Token):
    """List project files in the cloud folder."""
    return await workspace.list_cloud()


@router.post(
    "/load/cloud/{file_id}",
    response_model=LoadResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def load_cloud(file_id: str, workspace: WorkspaceDep, token: Token):
    """Load a cloud project; the cloud becomes the save destination."""
    await workspace.load_cloud(file_id)
    return load_response(workspace, True)


def autosave_response(workspace: Workspace) -> AutosaveResponse:
    return AutosaveResponse(
        enabled=workspace.autosave.enabled,
        destination=workspace.router.destination,
        armed=workspace.autosave.is_armed,
    )


@router.get(
    "/autosave",
    response_model=AutosaveResponse,
    responses={401: {"model": ErrorResponse}},
)
async def get_autosave(workspace: WorkspaceDep, token: Token):
    """Get the autosave status."""
    return autosave_response(workspace)


@router.put(
    "/autosave",
    response_model=AutosaveResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_autosave(request: AutosaveRequest, workspace: WorkspaceDep, token: Token):
    """Switch autosave on or off and choose where it writes."""
    if "destination" in request.model_fields_set:
        workspace.router.set_destination(request.destination)
    if request.enabled is not None:
        workspace.autosave.enabled = request.enabled
    return autosave_response(workspace)
