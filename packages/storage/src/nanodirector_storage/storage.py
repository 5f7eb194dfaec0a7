"""Storage backends for Nano Director projects."""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from nanodirector_core_schemas import (
    PersistenceError,
    PersistenceErrorKind,
    ProjectState,
    Session,
)

logger = logging.getLogger(__name__)

ASSETS_DIR = "director_assets"
DEFAULT_MANIFEST = "project.json"


def slugify(text: str) -> str:
    """Convert text to a URL/filename-friendly slug.

    Args:
        text: Text to slugify

    Returns:
        Slugified text (lowercase, hyphens instead of spaces)
    """
    # Convert to lowercase
    text = text.lower()
    # Replace spaces and underscores with hyphens
    text = re.sub(r'[\s_]+', '-', text)
    # Remove any characters that aren't alphanumeric or hyphens
    text = re.sub(r'[^\w\-]', '', text)
    # Remove multiple consecutive hyphens
    text = re.sub(r'-+', '-', text)
    # Strip leading/trailing hyphens
    text = text.strip('-')
    return text


def is_asset_ref(value: str) -> bool:
    """Whether an image value is a path into a project's asset folder.

    Base64 data never contains "_", so the prefix is unambiguous.
    """
    return value.startswith(f"{ASSETS_DIR}/")


def manifest_filename(state: ProjectState) -> str:
    slug = slugify(state.project_name) if state.project_name else ""
    return f"{slug}.json" if slug else DEFAULT_MANIFEST


def _timestamp_slug() -> str:
    return re.sub(r"[:.]", "-", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))


def _write_json_atomic(path: Path, data: dict) -> None:
    temp_file = path.with_suffix(".tmp")
    with open(temp_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    temp_file.replace(path)


def parse_manifest(text: str, source: str = "manifest") -> ProjectState:
    """Parse manifest JSON into a ProjectState.

    Raises:
        PersistenceError: If the document is not a valid manifest
    """
    try:
        return ProjectState.model_validate_json(text)
    except PydanticValidationError as e:
        raise PersistenceError(
            f"{source} is not a valid project manifest: {e.error_count()} problem(s), "
            f"first: {e.errors()[0]['msg']}",
            kind=PersistenceErrorKind.IO,
        ) from e


@dataclass
class AssetBatch:
    """Files written for one remaster batch, as paths relative to the project root."""

    batch_id: str
    source_ref: str
    panel_refs: list[str] = field(default_factory=list)


class LocalStore:
    """Project directory on the local filesystem.

    Starts without a directory; ``open`` grants one. Re-saving a project
    overwrites the same manifest file.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root: Optional[Path] = None
        if root is not None:
            self.open(root)

    @property
    def is_active(self) -> bool:
        return self.root is not None

    @property
    def folder_name(self) -> Optional[str]:
        return self.root.name if self.root else None

    def open(self, root: Path) -> None:
        """Use ``root`` as the project directory, creating its layout."""
        root = Path(root)
        try:
            root.mkdir(parents=True, exist_ok=True)
            (root / ASSETS_DIR).mkdir(exist_ok=True)
        except PermissionError as e:
            raise PersistenceError(
                f"Cannot write to {root}: {e}", kind=PersistenceErrorKind.ACCESS_DENIED
            ) from e
        except OSError as e:
            raise PersistenceError(f"Cannot open {root}: {e}") from e
        self.root = root
        logger.info("Local project folder: %s", root)

    def close(self) -> None:
        self.root = None

    def _require_root(self) -> Path:
        if self.root is None:
            raise PersistenceError(
                "No project folder selected", kind=PersistenceErrorKind.NO_DESTINATION
            )
        return self.root

    def save_manifest(self, state: ProjectState) -> Path:
        """Write the manifest atomically, overwriting any previous save.

        Returns:
            Path of the manifest file
        """
        root = self._require_root()
        path = root / manifest_filename(state)
        try:
            _write_json_atomic(path, state.model_dump(mode="json"))
        except PermissionError as e:
            raise PersistenceError(
                f"Cannot write {path}: {e}", kind=PersistenceErrorKind.ACCESS_DENIED
            ) from e
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug("Manifest written to %s", path)
        return path

    def load_manifest(self) -> Optional[ProjectState]:
        """Read the first manifest (by file name) in the project folder.

        Returns:
            The project state, or None if the folder holds no manifest
        """
        root = self._require_root()
        manifests = sorted(p for p in root.glob("*.json") if p.is_file())
        if not manifests:
            return None

        path = manifests[0]
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e
        return parse_manifest(text, source=path.name)

    def save_batch(self, source_image: bytes, panel_images: list[bytes]) -> AssetBatch:
        """Write a source composite and its panels into a new batch folder.

        Layout: ``director_assets/Batch_<timestamp>/Source_Grid.png`` and
        ``Shot_<n>_Remastered.png`` numbered from 1.
        """
        root = self._require_root()
        batch_id = f"Batch_{_timestamp_slug()}"
        batch_rel = f"{ASSETS_DIR}/{batch_id}"
        batch_dir = root / ASSETS_DIR / batch_id

        try:
            batch_dir.mkdir(parents=True, exist_ok=True)
            (batch_dir / "Source_Grid.png").write_bytes(source_image)
            panel_refs = []
            for i, data in enumerate(panel_images):
                name = f"Shot_{i + 1}_Remastered.png"
                (batch_dir / name).write_bytes(data)
                panel_refs.append(f"{batch_rel}/{name}")
        except OSError as e:
            raise PersistenceError(f"Failed to write asset batch {batch_id}: {e}") from e

        logger.info("Saved %d panels to %s", len(panel_images), batch_rel)
        return AssetBatch(
            batch_id=batch_id,
            source_ref=f"{batch_rel}/Source_Grid.png",
            panel_refs=panel_refs,
        )

    def read_image(self, ref: str) -> bytes:
        """Read an asset written by ``save_batch``."""
        root = self._require_root()
        path = (root / ref).resolve()
        if not path.is_relative_to(root.resolve()):
            raise PersistenceError(
                f"Asset path escapes project folder: {ref}",
                kind=PersistenceErrorKind.ACCESS_DENIED,
            )
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise PersistenceError(
                f"Asset not found: {ref}", kind=PersistenceErrorKind.NOT_FOUND
            ) from e
        except OSError as e:
            raise PersistenceError(f"Failed to read asset {ref}: {e}") from e


def export_manifest(state: ProjectState, path: Path) -> Path:
    """Write a manifest to an arbitrary file (manual download/export)."""
    path = Path(path)
    if path.is_dir():
        path = path / manifest_filename(state)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(path, state.model_dump(mode="json"))
    except OSError as e:
        raise PersistenceError(f"Failed to export to {path}: {e}") from e
    return path


def import_manifest(path: Path) -> ProjectState:
    """Read a manifest from a single external file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PersistenceError(f"File not found: {path}", kind=PersistenceErrorKind.NOT_FOUND) from e
    except OSError as e:
        raise PersistenceError(f"Failed to read {path}: {e}") from e
    return parse_manifest(text, source=path.name)


class CloudFile(BaseModel):
    """A project file stored in the cloud."""

    id: str
    name: str
    mime_type: str = "application/json"


class CloudStore(ABC):
    """A remote store where every save creates a new named file."""

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    async def save(self, state: ProjectState, name: str) -> str:
        """Upload a manifest under ``name`` and return the new file id."""
        ...

    @abstractmethod
    async def list(self) -> list[CloudFile]:
        ...

    @abstractmethod
    async def load(self, file_id: str) -> ProjectState:
        ...


def cloud_filename(state: ProjectState) -> str:
    """``<project name>.json``, or a timestamped name for unnamed projects."""
    if state.project_name.strip():
        return f"{state.project_name.strip()}.json"
    return f"NanoProject - {datetime.now(timezone.utc).isoformat()}.json"


class DriveStore(CloudStore):
    """Google Drive folder accessed with the session's OAuth token."""

    FOLDER_NAME = "Nano Director Projects"
    FOLDER_MIME = "application/vnd.google-apps.folder"
    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

    def __init__(
        self,
        session: Session,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Drive store.

        Args:
            session: Session holding the access token (read on each call)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network)
        """
        self.session = session
        self.timeout = timeout
        self._transport = transport

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def _headers(self) -> dict[str, str]:
        if not self.session.access_token:
            raise PersistenceError(
                "Not signed in to Google Drive", kind=PersistenceErrorKind.NOT_AUTHENTICATED
            )
        return {"Authorization": f"Bearer {self.session.access_token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if response.is_success:
            return
        if response.status_code in (401, 403):
            kind = PersistenceErrorKind.ACCESS_DENIED
        elif response.status_code == 404:
            kind = PersistenceErrorKind.NOT_FOUND
        else:
            kind = PersistenceErrorKind.IO
        raise PersistenceError(
            f"Drive request failed ({response.status_code}): {response.text[:200]}", kind=kind
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError(f"Drive returned a malformed response: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError("Drive returned a malformed response: expected an object")
        return data

    @staticmethod
    def _file_id(data: dict) -> str:
        file_id = data.get("id") if isinstance(data, dict) else None
        if not file_id:
            raise PersistenceError("Drive response is missing the file id")
        return file_id

    async def _folder_id(self, client: httpx.AsyncClient, headers: dict[str, str]) -> str:
        query = (
            f"mimeType='{self.FOLDER_MIME}' and name='{self.FOLDER_NAME}' and trashed=false"
        )
        response = await client.get(self.FILES_URL, params={"q": query}, headers=headers)
        self._check(response)
        files = self._json(response).get("files") or []
        if files:
            return self._file_id(files[0])

        response = await client.post(
            self.FILES_URL,
            json={"name": self.FOLDER_NAME, "mimeType": self.FOLDER_MIME},
            headers=headers,
        )
        self._check(response)
        logger.info("Created Drive folder %r", self.FOLDER_NAME)
        return self._file_id(self._json(response))

    async def save(self, state: ProjectState, name: str) -> str:
        headers = self._headers()
        try:
            async with self._client() as client:
                folder_id = await self._folder_id(client, headers)
                metadata = {"name": name, "parents": [folder_id], "mimeType": "application/json"}
                response = await client.post(
                    self.UPLOAD_URL,
                    params={"uploadType": "multipart"},
                    headers=headers,
                    files={
                        "metadata": (None, json.dumps(metadata), "application/json"),
                        "file": (name, state.model_dump_json(), "application/json"),
                    },
                )
                self._check(response)
        except httpx.TransportError as e:
            raise PersistenceError(f"Drive upload failed: {e}") from e

        file_id = self._file_id(self._json(response))
        logger.info("Uploaded %s to Drive (%s)", name, file_id)
        return file_id

    async def list(self) -> list[CloudFile]:
        headers = self._headers()
        try:
            async with self._client() as client:
                folder_id = await self._folder_id(client, headers)
                query = f"'{folder_id}' in parents and mimeType='application/json' and trashed=false"
                response = await client.get(
                    self.FILES_URL,
                    params={"q": query, "fields": "files(id, name, mimeType)"},
                    headers=headers,
                )
                self._check(response)
        except httpx.TransportError as e:
            raise PersistenceError(f"Drive listing failed: {e}") from e

        try:
            return [
                CloudFile(id=f["id"], name=f["name"], mime_type=f.get("mimeType", "application/json"))
                for f in self._json(response).get("files") or []
            ]
        except (KeyError, TypeError) as e:
            raise PersistenceError(f"Drive listing is malformed: {e!r}") from e

    async def load(self, file_id: str) -> ProjectState:
        headers = self._headers()
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.FILES_URL}/{file_id}", params={"alt": "media"}, headers=headers
                )
                self._check(response)
        except httpx.TransportError as e:
            raise PersistenceError(f"Drive download failed: {e}") from e

        return parse_manifest(response.text, source=f"Drive file {file_id}")
