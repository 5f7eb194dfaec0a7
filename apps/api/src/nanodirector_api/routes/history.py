"""History routes."""

from fastapi import APIRouter, HTTPException

from nanodirector_core_schemas import HistoryItem
from nanodirector_api.deps import DirectorDep, Token
from nanodirector_api.schemas import (
    DirectorStateResponse,
    ErrorResponse,
    HistoryEntryResponse,
    history_to_response,
)
from nanodirector_api.routes.director import state_response

router = APIRouter(prefix="/director/history", tags=["History"])


@router.get(
    "",
    response_model=list[HistoryEntryResponse],
    responses={401: {"model": ErrorResponse}},
)
async def list_history(director: DirectorDep, token: Token):
    """List remaster runs, newest first."""
    return [history_to_response(entry) for entry in director.history]


@router.get(
    "/{entry_id}",
    response_model=HistoryItem,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_history_entry(entry_id: str, director: DirectorDep, token: Token):
    """Get a full history entry."""
    return director.history.find(entry_id)


@router.post(
    "/{entry_id}/restore",
    response_model=DirectorStateResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def restore_history_entry(entry_id: str, director: DirectorDep, token: Token):
    """Bring back the panels, script, grid size and style of an entry."""
    if director.is_busy:
        raise HTTPException(status_code=409, detail=f"Director is busy ({director.phase.value})")
    director.restore_history(entry_id)
    return state_response(director)
