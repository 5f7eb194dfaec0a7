"""One running Director instance with its collaborators wired together."""

import logging
from pathlib import Path
from typing import Callable, Optional

from nanodirector_core_schemas import ProjectState, Session
from nanodirector_gemini_client import GeminiClient
from nanodirector_generators import DirectorGenerator
from nanodirector_storage import CloudFile, CloudStore, DriveStore, LocalStore

from .autosave import AutosaveCoordinator
from .config import DirectorSettings, get_settings
from .director import DirectorService
from .job import JobService
from .persistence import Destination, FolderChooser, PersistenceRouter, SaveResult

logger = logging.getLogger(__name__)


class Workspace:
    """Director, persistence router, autosave and jobs sharing one session.

    Loads go through the router (which holds the operation lock) and the
    loaded state is then handed to the director.
    """

    def __init__(
        self,
        session: Session,
        generator,
        local_store: LocalStore,
        cloud_store: Optional[CloudStore] = None,
        remaster_delay: float = 0.8,
        autosave_enabled: bool = True,
        autosave_quiet_period: float = 5.0,
        choose_folder: Optional[FolderChooser] = None,
        request_login: Optional[Callable[[], None]] = None,
        ask_destination: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.director = DirectorService(
            generator, local_store=local_store, remaster_delay=remaster_delay
        )
        self.router = PersistenceRouter(
            local_store,
            cloud_store,
            choose_folder=choose_folder,
            request_login=request_login,
        )
        self.autosave = AutosaveCoordinator(
            self.router,
            self.director.snapshot,
            quiet_period=autosave_quiet_period,
            enabled=autosave_enabled,
            ask_destination=ask_destination,
        )
        self.jobs = JobService()
        self.director.subscribe(self.autosave.notify)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[DirectorSettings] = None,
        project_dir: Optional[Path] = None,
        autosave: Optional[bool] = None,
        **kwargs,
    ) -> "Workspace":
        """Build a workspace backed by Gemini and Google Drive.

        Args:
            settings: Settings (defaults to the cached environment settings)
            project_dir: Project folder to open as the local destination
            autosave: Override ``settings.autosave_enabled``
            **kwargs: Passed to the constructor (callbacks)
        """
        settings = settings or get_settings()
        session = settings.build_session()
        client = GeminiClient.from_session(
            session,
            model=settings.text_model,
            image_model=settings.image_model,
            cache_dir=settings.cache_dir if settings.persist_cache else None,
        )
        generator = DirectorGenerator(client, candidate_delay=settings.candidate_delay)
        return cls(
            session,
            generator,
            LocalStore(project_dir) if project_dir else LocalStore(),
            DriveStore(session),
            remaster_delay=settings.remaster_delay,
            autosave_enabled=settings.autosave_enabled if autosave is None else autosave,
            autosave_quiet_period=settings.autosave_quiet_period,
            **kwargs,
        )

    async def save(
        self,
        destination: Optional[Destination] = None,
        path: Optional[Path] = None,
    ) -> SaveResult:
        """Explicitly save the current project."""
        return await self.router.save(self.director.snapshot(), destination, path=path)

    async def open_local(self, path: Optional[Path] = None) -> Optional[ProjectState]:
        """Open a project folder; loads its manifest if it has one."""
        state = await self.router.open_local(path)
        if state is not None:
            self.director.load_state(state)
        return state

    async def import_file(self, path: Path) -> ProjectState:
        state = await self.router.import_file(path)
        self.director.load_state(state)
        return state

    async def list_cloud(self) -> list[CloudFile]:
        return await self.router.list_cloud()

    async def load_cloud(self, file_id: str) -> ProjectState:
        state = await self.router.load_cloud(file_id)
        self.director.load_state(state)
        return state

    def close(self) -> None:
        self.autosave.cancel()
