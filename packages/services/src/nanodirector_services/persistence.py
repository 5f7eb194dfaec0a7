"""Routing of save and load requests to local, cloud and export destinations."""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from nanodirector_core_schemas import ProjectState
from nanodirector_storage import (
    CloudFile,
    CloudStore,
    LocalStore,
    cloud_filename,
    export_manifest,
    import_manifest,
)

from .exceptions import PersistenceError, PersistenceErrorKind

logger = logging.getLogger(__name__)

FolderChooser = Callable[[], Union[Optional[Path], Awaitable[Optional[Path]]]]


class Destination(str, Enum):
    """Where a project is saved."""

    LOCAL = "local"
    CLOUD = "cloud"
    DOWNLOAD = "download"


@dataclass
class SaveResult:
    """What a save request did."""

    destination: Optional[Destination]
    saved: bool
    location: Optional[str] = None  # Manifest path or cloud file id
    reason: Optional[str] = None  # Why nothing was written


class OperationLock:
    """Advisory flag held by explicit save/load actions.

    Autosave never holds it; it checks it before starting and registers
    its write so an explicit action waits for that write to finish first.
    """

    def __init__(self):
        self._held: Optional[str] = None
        self._background: set[asyncio.Task] = set()

    @property
    def held(self) -> bool:
        return self._held is not None

    @property
    def holder(self) -> Optional[str]:
        return self._held

    def track(self, task: asyncio.Task) -> None:
        """Register a background write explicit actions must wait for."""
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[None]:
        """Hold the lock for ``operation``; released on every exit path.

        Raises:
            PersistenceError: If another explicit action holds the lock
        """
        if self._held is not None:
            raise PersistenceError(
                f"Cannot {operation} while {self._held} is in progress",
                kind=PersistenceErrorKind.BUSY,
            )
        self._held = operation
        try:
            if self._background:
                await asyncio.wait(list(self._background))
            yield
        finally:
            self._held = None


class PersistenceRouter:
    """Sends save and load requests to the right destination.

    Local saves overwrite the project's manifest; cloud saves always create
    a new file; exports are only ever explicit.
    """

    def __init__(
        self,
        local_store: LocalStore,
        cloud_store: Optional[CloudStore] = None,
        choose_folder: Optional[FolderChooser] = None,
        request_login: Optional[Callable[[], None]] = None,
    ):
        """Initialize the router.

        Args:
            local_store: Project folder store
            cloud_store: Cloud store (None when cloud sync is unavailable)
            choose_folder: Asks the user for a project folder; None means cancelled
            request_login: Starts the cloud sign-in flow
        """
        self.local_store = local_store
        self.cloud_store = cloud_store
        self.choose_folder = choose_folder
        self.request_login = request_login
        self.lock = OperationLock()
        self.destination: Optional[Destination] = (
            Destination.LOCAL if local_store.is_active else None
        )

    def set_destination(self, destination: Optional[Destination]) -> None:
        """Choose where autosave writes."""
        if destination == Destination.DOWNLOAD:
            raise PersistenceError(
                "Download is not an autosave destination", kind=PersistenceErrorKind.UNSUPPORTED
            )
        if destination == Destination.CLOUD and self.cloud_store is None:
            raise PersistenceError(
                "Cloud storage is not configured", kind=PersistenceErrorKind.UNSUPPORTED
            )
        self.destination = destination

    def _require_cloud(self) -> CloudStore:
        if self.cloud_store is None:
            raise PersistenceError(
                "Cloud storage is not configured", kind=PersistenceErrorKind.UNSUPPORTED
            )
        return self.cloud_store

    async def _ask_for_folder(self) -> Optional[Path]:
        if self.choose_folder is None:
            return None
        folder = self.choose_folder()
        if inspect.isawaitable(folder):
            folder = await folder
        return folder

    # === Saving ===

    async def save(
        self,
        state: ProjectState,
        destination: Optional[Destination] = None,
        autosave: bool = False,
        path: Optional[Path] = None,
    ) -> SaveResult:
        """Save ``state``.

        Args:
            state: Snapshot to persist
            destination: Target (defaults to the chosen destination)
            autosave: True for timer-driven saves, which never prompt and never lock
            path: Folder for a local save, or file/folder for an export

        Raises:
            PersistenceError: If the write fails, or no destination is chosen for an explicit save
        """
        destination = destination or self.destination
        if destination is None:
            if autosave:
                return SaveResult(None, saved=False, reason="no destination")
            raise PersistenceError(
                "Choose where to save the project first", kind=PersistenceErrorKind.NO_DESTINATION
            )

        if autosave:
            if destination == Destination.DOWNLOAD:
                return SaveResult(destination, saved=False, reason="exports are explicit only")
            return await self._save(state, destination, autosave=True, path=None)

        async with self.lock.hold(f"{destination.value} save"):
            return await self._save(state, destination, autosave=False, path=path)

    async def _save(
        self,
        state: ProjectState,
        destination: Destination,
        autosave: bool,
        path: Optional[Path],
    ) -> SaveResult:
        if destination == Destination.LOCAL:
            return await self._save_local(state, autosave, path)
        if destination == Destination.CLOUD:
            return await self._save_cloud(state, autosave)

        if path is None:
            raise PersistenceError(
                "Export needs a target path", kind=PersistenceErrorKind.NO_DESTINATION
            )
        written = export_manifest(state, path)
        logger.info("Project exported to %s", written)
        return SaveResult(destination, saved=True, location=str(written))

    async def _save_local(
        self, state: ProjectState, autosave: bool, path: Optional[Path]
    ) -> SaveResult:
        if path is not None and not autosave:
            self.local_store.open(path)
            self.destination = Destination.LOCAL

        if not self.local_store.is_active:
            if autosave:
                return SaveResult(Destination.LOCAL, saved=False, reason="no folder granted")
            folder = await self._ask_for_folder()
            if folder is None:
                return SaveResult(Destination.LOCAL, saved=False, reason="folder selection cancelled")
            self.local_store.open(folder)
            self.destination = Destination.LOCAL

        manifest = self.local_store.save_manifest(state)
        if autosave:
            logger.debug("Autosaved to %s", manifest)
        else:
            logger.info("Project saved locally as %s", manifest.name)
        return SaveResult(Destination.LOCAL, saved=True, location=str(manifest))

    async def _save_cloud(self, state: ProjectState, autosave: bool) -> SaveResult:
        cloud = self._require_cloud()
        if not cloud.is_authenticated:
            if autosave:
                return SaveResult(Destination.CLOUD, saved=False, reason="not signed in")
            if self.request_login is not None:
                self.request_login()
            return SaveResult(Destination.CLOUD, saved=False, reason="sign-in requested")

        name = cloud_filename(state)
        file_id = await cloud.save(state, name)
        return SaveResult(Destination.CLOUD, saved=True, location=file_id)

    # === Loading ===

    async def import_file(self, path: Path) -> ProjectState:
        """Load a manifest from a single file. The destination is unchanged."""
        async with self.lock.hold("import"):
            state = import_manifest(path)
        logger.info("Imported project from %s", path)
        return state

    async def open_local(self, path: Optional[Path] = None) -> Optional[ProjectState]:
        """Open a project folder and read the first manifest in it.

        The folder becomes the save destination even when it holds no
        manifest yet.

        Returns:
            The loaded state, None if the folder has no manifest or the user cancelled
        """
        async with self.lock.hold("local load"):
            if path is None:
                path = await self._ask_for_folder()
                if path is None:
                    return None
            self.local_store.open(path)
            self.destination = Destination.LOCAL
            state = self.local_store.load_manifest()

        if state is None:
            logger.info("No project file found in %s, starting fresh", path)
        else:
            logger.info("Loaded project from %s", self.local_store.folder_name)
        return state

    async def list_cloud(self) -> list[CloudFile]:
        """List project files in the cloud folder.

        Raises:
            PersistenceError: If not signed in (sign-in is requested) or listing fails
        """
        cloud = self._require_cloud()
        async with self.lock.hold("cloud listing"):
            if not cloud.is_authenticated:
                if self.request_login is not None:
                    self.request_login()
                raise PersistenceError(
                    "Sign in to list cloud projects", kind=PersistenceErrorKind.NOT_AUTHENTICATED
                )
            return await cloud.list()

    async def load_cloud(self, file_id: str) -> ProjectState:
        """Fetch a cloud project; the cloud becomes the save destination."""
        cloud = self._require_cloud()
        async with self.lock.hold("cloud load"):
            state = await cloud.load(file_id)
            self.destination = Destination.CLOUD
        logger.info("Loaded project %r from the cloud", state.project_name or "Untitled")
        return state
