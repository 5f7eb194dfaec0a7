"""API dependencies."""

from dataclasses import dataclass, field
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from nanodirector_services import DirectorService, DirectorSettings, JobService, Workspace


@dataclass
class AccessSettings:
    """Bearer-token access control for one application."""

    require_auth: bool = False
    api_keys: set[str] = field(default_factory=set)  # Empty = any token accepted

    @classmethod
    def from_settings(cls, settings: DirectorSettings) -> "AccessSettings":
        return cls(require_auth=settings.require_auth, api_keys=set(settings.api_keys))


def get_access(request: Request) -> AccessSettings:
    return request.app.state.access


# Authentication
async def verify_token(
    authorization: Annotated[Optional[str], Header()] = None,
    access: AccessSettings = Depends(get_access),
) -> Optional[str]:
    """Verify bearer token if auth is required.

    Returns:
        The token if valid, None if auth not required
    """
    if not access.require_auth:
        return None

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = token.strip()
    if access.api_keys and token not in access.api_keys:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
    return token


# Workspace access
def get_workspace(request: Request) -> Workspace:
    """The workspace owned by the running application."""
    return request.app.state.workspace


def get_director(workspace: Annotated[Workspace, Depends(get_workspace)]) -> DirectorService:
    return workspace.director


def get_jobs(workspace: Annotated[Workspace, Depends(get_workspace)]) -> JobService:
    return workspace.jobs


Token = Annotated[Optional[str], Depends(verify_token)]
WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]
DirectorDep = Annotated[DirectorService, Depends(get_director)]
JobsDep = Annotated[JobService, Depends(get_jobs)]
