"""
Pytest Configuration and Fixtures

Shared fixtures for all tests. Nothing here touches the network: the
generation collaborator and the cloud store are in-memory fakes.
"""

import asyncio
import itertools
import shutil
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from nanodirector_core_schemas import (
    ProjectState,
    ProviderError,
    ProviderErrorKind,
    Script,
    Shot,
)
from nanodirector_storage import CloudFile, CloudStore, parse_manifest

# One colour per cell, row-major; enough for a 4x4 grid
CELL_COLORS = [
    (200, 30, 30), (30, 200, 30), (30, 30, 200), (200, 200, 30),
    (200, 30, 200), (30, 200, 200), (120, 60, 0), (0, 120, 60),
    (60, 0, 120), (250, 250, 250), (10, 10, 10), (128, 128, 128),
    (255, 140, 0), (75, 0, 130), (0, 100, 0), (139, 69, 19),
]


def make_image(width: int, height: int, color=(90, 90, 90)) -> bytes:
    """Encoded PNG filled with one colour."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_grid(grid_size: int, cell: int = 16, extra_w: int = 0, extra_h: int = 0) -> bytes:
    """Composite whose cells are filled with CELL_COLORS in row-major order.

    ``extra_w``/``extra_h`` add remainder pixels on the right/bottom edge.
    """
    width = grid_size * cell + extra_w
    height = grid_size * cell + extra_h
    image = Image.new("RGB", (width, height), (0, 0, 0))
    for row in range(grid_size):
        for col in range(grid_size):
            color = CELL_COLORS[row * grid_size + col]
            image.paste(color, (col * cell, row * cell, (col + 1) * cell, (row + 1) * cell))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def pixel(image_data: bytes, x: int = 0, y: int = 0):
    with Image.open(BytesIO(image_data)) as image:
        return image.convert("RGB").getpixel((x, y))


def image_size(image_data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(image_data)) as image:
        return image.size


REMASTERED_COLOR = (255, 255, 0)


class FakeGenerator:
    """In-memory generation collaborator that records every call.

    Args:
        fail_remaster: 0-based cell indices whose remaster call fails
        remaster_error: Raised by the failing remaster calls instead of a ProviderError
        fail_extract: Make every prompt extraction fail
        candidate_error: Raised by candidate_grids instead of returning sheets
        script_error: Raised by script_and_prompt
        extract_delay: Seconds each extraction takes
        gate: Event script/candidate calls wait on before returning
    """

    def __init__(
        self,
        fail_remaster=(),
        remaster_error: Optional[Exception] = None,
        fail_extract: bool = False,
        candidate_error: Optional[Exception] = None,
        script_error: Optional[Exception] = None,
        extract_delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.fail_remaster = set(fail_remaster)
        self.remaster_error = remaster_error
        self.fail_extract = fail_extract
        self.candidate_error = candidate_error
        self.script_error = script_error
        self.extract_delay = extract_delay
        self.gate = gate
        self.calls: list[tuple[str, tuple]] = []
        self._remaster_index = itertools.count()
        self.active_remasters = 0
        self.max_active_remasters = 0

    def called(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    async def script_and_prompt(self, idea, ref_images, grid_size) -> Script:
        self.calls.append(("script_and_prompt", (idea, ref_images, grid_size)))
        if self.gate is not None:
            await self.gate.wait()
        if self.script_error is not None:
            raise self.script_error
        total = grid_size * grid_size
        return Script(
            title=f"Script for {idea}",
            logline="A short film.",
            shots=[
                Shot(number=i + 1, description=f"Shot {i + 1} of {idea}", camera_angle="Wide")
                for i in range(total)
            ],
            composite_prompt=f"A {grid_size}x{grid_size} sheet: {idea}",
        )

    async def recompile_prompt(self, script, grid_size) -> str:
        self.calls.append(("recompile_prompt", (script, grid_size)))
        return f"Recompiled {grid_size}x{grid_size}: " + "; ".join(s.description for s in script.shots)

    async def candidate_grids(self, prompt, aspect_ratio, count, resolution, style_prefs, grid_size):
        self.calls.append(
            ("candidate_grids", (prompt, aspect_ratio, count, resolution, style_prefs, grid_size))
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.candidate_error is not None:
            raise self.candidate_error
        return [make_grid(grid_size) for _ in range(count)]

    async def remaster_cell(self, cell, shot_description, resolution, aspect_ratio, style_prefs):
        index = next(self._remaster_index)
        self.calls.append(("remaster_cell", (index, shot_description, resolution, aspect_ratio)))
        self.active_remasters += 1
        self.max_active_remasters = max(self.max_active_remasters, self.active_remasters)
        try:
            await asyncio.sleep(0)
            if index in self.fail_remaster:
                if self.remaster_error is not None:
                    raise self.remaster_error
                raise ProviderError("Remaster Error: boom", kind=ProviderErrorKind.SERVER_ERROR)
            return make_image(8, 8, REMASTERED_COLOR)
        finally:
            self.active_remasters -= 1

    async def extract_prompt(self, cell, global_context, shot_description) -> str:
        self.calls.append(("extract_prompt", (global_context, shot_description)))
        if self.extract_delay:
            await asyncio.sleep(self.extract_delay)
        if self.fail_extract:
            raise ProviderError("Extract Error: boom", kind=ProviderErrorKind.RATE_LIMITED)
        return f"Prompt: {shot_description}"


class FakeCloudStore(CloudStore):
    """Cloud store keeping files in a dict; every save creates a new file."""

    def __init__(self, authenticated: bool = True):
        self.authenticated = authenticated
        self.files: dict[str, tuple[str, str]] = {}
        self._ids = itertools.count(1)

    @property
    def is_authenticated(self) -> bool:
        return self.authenticated

    async def save(self, state: ProjectState, name: str) -> str:
        file_id = f"file-{next(self._ids)}"
        self.files[file_id] = (name, state.model_dump_json())
        return file_id

    async def list(self) -> list[CloudFile]:
        return [CloudFile(id=file_id, name=name) for file_id, (name, _) in self.files.items()]

    async def load(self, file_id: str) -> ProjectState:
        return parse_manifest(self.files[file_id][1], source=file_id)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def cloud_store() -> FakeCloudStore:
    return FakeCloudStore()


@pytest.fixture
def sample_script() -> Script:
    return Script(
        title="Rain",
        logline="A detective follows a lead.",
        shots=[Shot(number=i + 1, description=f"Shot {i + 1}") for i in range(4)],
        composite_prompt="A 2x2 sheet of a detective in the rain",
    )
