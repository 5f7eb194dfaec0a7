"""Core data models for Nano Director."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


GRID_SIZES = (2, 3, 4)
MAX_CANDIDATES = 4

DEFAULT_NEGATIVE_PROMPT = (
    "no text, no watermark, no grid lines, no grid outlines, no dividing lines, "
    "no white borders, no black borders, no frames, no gutters, no blur, "
    "no distortion, no bad anatomy"
)


class AspectRatio(str, Enum):
    """Output aspect ratio."""

    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    STANDARD = "4:3"
    VERTICAL_STANDARD = "3:4"
    CINEMATIC = "21:9"


class ImageResolution(str, Enum):
    """Image size requested from the image model."""

    RES_1K = "1K"
    RES_2K = "2K"
    RES_4K = "4K"


class VisualStyle(str, Enum):
    """Style mode applied to composites and remastered panels."""

    DEFAULT = "DEFAULT"
    CINEMATIC = "CINEMATIC"
    ANIME = "ANIME"
    THREE_D_ANIMATION = "3D_ANIMATION"
    OIL_PAINTING = "OIL_PAINTING"
    WATERCOLOR = "WATERCOLOR"
    INK_WASH = "INK_WASH"
    CYBERPUNK = "CYBERPUNK"
    STEAMPUNK = "STEAMPUNK"
    NOIR = "NOIR"
    VINTAGE_FILM = "VINTAGE_FILM"
    CLAYMATION = "CLAYMATION"
    COMIC_BOOK = "COMIC_BOOK"
    FANTASY_ART = "FANTASY_ART"
    CUSTOM = "CUSTOM"


class PipelinePhase(str, Enum):
    """Where the Director pipeline currently is."""

    IDLE = "idle"
    SCRIPTING = "scripting"
    CANDIDATES_READY = "candidates_ready"
    SELECTING = "selecting"
    REMASTERING = "remastering"
    PANELS_READY = "panels_ready"


class DisplayState(str, Enum):
    """What the results area should show."""

    PROMPT_SELECT = "prompt_select"
    PROMPT_DIRECT = "prompt_direct"
    SHOW_PANELS = "show_panels"


# === Core Models ===


class StylePreferences(BaseModel):
    """Style mode plus optional free-text refinements.

    ``custom_append`` and ``custom_override`` are mutually exclusive.
    """

    mode: VisualStyle = VisualStyle.DEFAULT
    custom_positive: str = ""  # Only used by VisualStyle.CUSTOM
    custom_append: str = ""
    custom_override: str = ""
    custom_negative: str = DEFAULT_NEGATIVE_PROMPT

    @model_validator(mode="after")
    def check_append_override(self) -> "StylePreferences":
        """Reject append and override text being set together."""
        if self.custom_append.strip() and self.custom_override.strip():
            raise ValueError("custom_append and custom_override cannot both be set")
        return self


class Shot(BaseModel):
    """One storyboard shot in the script."""

    number: int
    description: str
    camera_angle: str = ""
    lighting: str = ""


class Script(BaseModel):
    """Storyboard script with the compiled composite prompt."""

    title: str
    logline: str = ""
    shots: list[Shot] = Field(default_factory=list)
    composite_prompt: str = ""

    def shot_description(self, index: int) -> str:
        """Description for the shot at ``index`` (0-based), with a generic fallback."""
        if 0 <= index < len(self.shots) and self.shots[index].description:
            return self.shots[index].description
        return f"Cinematic shot {index + 1}"


# === History ===


class ShotSnapshot(Shot):
    """Read-only shot held by a history entry."""

    model_config = ConfigDict(frozen=True)


class ScriptSnapshot(Script):
    """Read-only script held by a history entry."""

    model_config = ConfigDict(frozen=True)

    shots: tuple[ShotSnapshot, ...] = ()

    def thaw(self) -> Script:
        """Editable copy for the project state."""
        return Script.model_validate(self.model_dump())


class StyleSnapshot(StylePreferences):
    """Read-only style preferences held by a history entry."""

    model_config = ConfigDict(frozen=True)

    def thaw(self) -> StylePreferences:
        """Editable copy for the project state."""
        return StylePreferences.model_validate(self.model_dump())


class HistoryItem(BaseModel):
    """Immutable snapshot of one successful remaster batch."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=datetime.now)
    final_images: tuple[str, ...] = ()
    script: Optional[ScriptSnapshot] = None
    grid_size: int = 2
    source_grid: Optional[str] = None  # Composite the panels were cut from
    style_prefs: StyleSnapshot = Field(default_factory=StyleSnapshot)

    @field_validator("script", "style_prefs", mode="before")
    @classmethod
    def snapshot(cls, value):
        """Copy live models into their read-only counterparts."""
        if isinstance(value, BaseModel):
            return value.model_dump()
        return value


class PanelTransfer(BaseModel):
    """A panel handed to a downstream editor."""

    panel_index: int
    prompt: str
    ref_images: list[str] = Field(default_factory=list)


class ProjectState(BaseModel):
    """The whole Director project, as persisted in a manifest.

    Images are base64-encoded PNG data, or paths relative to a local
    project directory once they have been written there.
    """

    project_name: str = ""
    story_idea: str = ""
    resolution: ImageResolution = ImageResolution.RES_2K  # Panel resolution
    grid_resolution: ImageResolution = ImageResolution.RES_2K
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    grid_size: int = Field(default=2, ge=2, le=4)
    candidate_count: int = Field(default=2, ge=1, le=MAX_CANDIDATES)
    ref_images: list[str] = Field(default_factory=list)

    script: Optional[Script] = None
    grid_candidates: list[str] = Field(default_factory=list)
    selected_grid_index: Optional[int] = None
    directed_grid_index: Optional[int] = None
    final_images: list[str] = Field(default_factory=list)
    history: list[HistoryItem] = Field(default_factory=list)

    style_prefs: StylePreferences = Field(default_factory=StylePreferences)
    is_script_dirty: bool = False

    @model_validator(mode="after")
    def check_invariants(self) -> "ProjectState":
        """Validate panel count and candidate indices."""
        if self.final_images and len(self.final_images) != self.grid_size ** 2:
            raise ValueError(
                f"final_images has {len(self.final_images)} entries, "
                f"expected {self.grid_size ** 2} for a {self.grid_size}x{self.grid_size} grid"
            )
        for name in ("selected_grid_index", "directed_grid_index"):
            index = getattr(self, name)
            if index is not None and not 0 <= index < len(self.grid_candidates):
                raise ValueError(f"{name} {index} is out of range")
        return self

    @property
    def has_content(self) -> bool:
        """Whether there is anything worth saving."""
        return bool(self.story_idea.strip()) or self.script is not None
