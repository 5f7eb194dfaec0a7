"""Nano Director API application."""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nanodirector_services import (
    NotFoundError,
    PersistenceError,
    ProviderError,
    ServiceError,
    ValidationError,
    Workspace,
    get_settings,
)
from .deps import AccessSettings
from .routes import (
    director_router,
    history_router,
    jobs_router,
    persistence_router,
)

logger = logging.getLogger(__name__)


def error_body(exc: ServiceError, **extra) -> dict:
    return {"error": {"code": exc.code, "message": exc.message, **extra}}


def create_app(
    workspace: Optional[Workspace] = None,
    project_dir: Optional[Path] = None,
    require_auth: bool = False,
    api_keys: Optional[set[str]] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        workspace: Workspace to serve (built from the environment settings if None)
        project_dir: Project folder to open as the local destination
        require_auth: Whether to require authentication
        api_keys: Set of valid API keys

    Returns:
        FastAPI application
    """
    settings = get_settings()
    access = AccessSettings.from_settings(settings)
    if require_auth:
        access.require_auth = True
    if api_keys:
        access.api_keys = set(api_keys)

    if workspace is None:
        workspace = Workspace.from_settings(
            settings,
            project_dir=project_dir,
            ask_destination=lambda: logger.info(
                "Autosave has no destination; choose one with PUT /persistence/autosave"
            ),
        )

    app = FastAPI(
        title="Nano Director API",
        description="""
Turns a story idea into a storyboard of remastered panels.

## Workflow

1. Set the story idea and options (`PUT /director/settings`, `PUT /director/style`)
2. Generate a script and candidate contact sheets (`POST /director/generate`)
3. Pick a candidate (`POST /director/select`)
4. Split and remaster its panels (`POST /director/direct`)
5. Hand a panel to an editor (`POST /director/panels/{index}/transfer`)

Every remaster run is kept in the history (`GET /director/history`) and can
be restored.

## Persistence

Projects are saved to a local folder (overwriting the project file), to
Google Drive (a new file per save) or exported as one JSON file. Changes are
autosaved after a quiet period once a destination is chosen.

## Async Operations

Generate and direct return `202 Accepted` with a job resource.
Poll the job status endpoint (`GET /jobs/{id}`) for completion.
""",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.workspace = workspace
    app.state.access = access

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(exc))

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=error_body(exc, field=exc.field))

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=409, content=error_body(exc, kind=exc.kind.value))

    @app.exception_handler(ProviderError)
    async def provider_handler(request: Request, exc: ProviderError):
        return JSONResponse(status_code=502, content=error_body(exc, kind=exc.kind.value))

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=500, content=error_body(exc))

    # Register routers
    app.include_router(director_router)
    app.include_router(history_router)
    app.include_router(persistence_router)
    app.include_router(jobs_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Default app instance for uvicorn
app = create_app()
