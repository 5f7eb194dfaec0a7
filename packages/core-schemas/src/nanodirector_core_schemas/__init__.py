"""Core domain models and errors for Nano Director."""

from nanodirector_core_schemas.models import (
    # Constants
    DEFAULT_NEGATIVE_PROMPT,
    GRID_SIZES,
    MAX_CANDIDATES,
    # Enums
    AspectRatio,
    DisplayState,
    ImageResolution,
    PipelinePhase,
    VisualStyle,
    # Domain Models
    HistoryItem,
    PanelTransfer,
    ProjectState,
    Script,
    ScriptSnapshot,
    Shot,
    ShotSnapshot,
    StylePreferences,
    StyleSnapshot,
)
from nanodirector_core_schemas.exceptions import (
    NotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    ProviderError,
    ProviderErrorKind,
    ServiceError,
    ValidationError,
)
from nanodirector_core_schemas.session import Session

__all__ = [
    # Constants
    "DEFAULT_NEGATIVE_PROMPT",
    "GRID_SIZES",
    "MAX_CANDIDATES",
    # Enums
    "AspectRatio",
    "DisplayState",
    "ImageResolution",
    "PipelinePhase",
    "VisualStyle",
    # Domain Models
    "HistoryItem",
    "PanelTransfer",
    "ProjectState",
    "Script",
    "ScriptSnapshot",
    "Shot",
    "ShotSnapshot",
    "StylePreferences",
    "StyleSnapshot",
    # Session
    "Session",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    "PersistenceErrorKind",
    "ProviderError",
    "ProviderErrorKind",
    "ServiceError",
    "ValidationError",
]
