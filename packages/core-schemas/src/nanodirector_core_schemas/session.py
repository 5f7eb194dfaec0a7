"""Explicit session context passed to every collaborator."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Session:
    """Credentials for one running Director instance.

    Built once at startup and handed to the Gemini client and the cloud
    store, which read it at call time.
    """

    api_key: Optional[str] = None
    drive_client_id: Optional[str] = None
    access_token: Optional[str] = None
    user: dict = field(default_factory=dict)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def is_authenticated(self) -> bool:
        """Whether a cloud access token is present."""
        return bool(self.access_token)

    def sign_in(self, access_token: str, user: Optional[dict] = None) -> None:
        """Store a cloud access token (and the user profile, if known)."""
        self.access_token = access_token
        self.user = user or {}

    def sign_out(self) -> None:
        self.access_token = None
        self.user = {}
