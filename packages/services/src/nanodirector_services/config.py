"""Director settings loaded from the environment and ``.env``."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nanodirector_core_schemas import Session


class DirectorSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="NANODIRECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Credentials
    google_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NANODIRECTOR_GOOGLE_API_KEY", "GOOGLE_API_KEY"),
    )
    drive_client_id: Optional[str] = None
    drive_access_token: Optional[str] = None

    # Models
    text_model: str = "gemini-3-flash-preview"
    image_model: str = "gemini-3-pro-image-preview"

    # Pipeline pacing
    remaster_delay: float = Field(default=0.8, ge=0)
    candidate_delay: float = Field(default=1.0, ge=0)

    # Autosave
    autosave_enabled: bool = True
    autosave_quiet_period: float = Field(default=5.0, gt=0)

    # Storage
    projects_dir: Path = Path("projects")
    cache_dir: Path = Path(".nanodirector/cache")
    persist_cache: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # API access (bearer tokens; an empty list accepts any token)
    api_keys: list[str] = Field(default_factory=list)
    require_auth: bool = False

    def build_session(self) -> Session:
        """Session seeded from these settings."""
        return Session(
            api_key=self.google_api_key,
            drive_client_id=self.drive_client_id,
            access_token=self.drive_access_token,
        )


@lru_cache()
def get_settings() -> DirectorSettings:
    """Get cached settings instance."""
    return DirectorSettings()
