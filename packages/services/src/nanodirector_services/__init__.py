"""Nano Director Services - the Director pipeline shared by CLI and API.

- DirectorService: owns project state; Generate -> Select -> Direct
- RemasterSequencer: one-at-a-time panel remastering with crop fallback
- PromptExtractionCache: single-flight per-panel prompt extraction
- HistoryLedger: newest-first remaster history
- PersistenceRouter / OperationLock: local, cloud and export saves and loads
- AutosaveCoordinator: debounced, lock-aware autosave
- JobService: background jobs for the API
- Workspace: everything above wired to one session
"""

from .autosave import AutosaveCoordinator
from .cache import PromptExtractionCache
from .config import DirectorSettings, get_settings
from .director import DirectorService
from .display import derive_display_state
from .exceptions import (
    NotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    ProviderError,
    ProviderErrorKind,
    ServiceError,
    ValidationError,
)
from .history import HistoryLedger
from .job import Job, JobService, JobStatus, JobType
from .logging_config import setup_logging
from .persistence import Destination, OperationLock, PersistenceRouter, SaveResult
from .remaster import RemasterResult, RemasterSequencer
from .workspace import Workspace

__all__ = [
    # Pipeline
    "DirectorService",
    "RemasterSequencer",
    "RemasterResult",
    "PromptExtractionCache",
    "HistoryLedger",
    "derive_display_state",
    # Persistence
    "AutosaveCoordinator",
    "Destination",
    "OperationLock",
    "PersistenceRouter",
    "SaveResult",
    # Jobs
    "JobService",
    "Job",
    "JobStatus",
    "JobType",
    # Wiring
    "Workspace",
    "DirectorSettings",
    "get_settings",
    "setup_logging",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    "PersistenceErrorKind",
    "ProviderError",
    "ProviderErrorKind",
    "ServiceError",
    "ValidationError",
]
