"""Error taxonomy shared by every Nano Director package."""

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    """Why a generation call failed."""

    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    MALFORMED_OUTPUT = "malformed_output"
    CONTENT_FILTERED = "content_filtered"
    NETWORK = "network"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"


class PersistenceErrorKind(str, Enum):
    """Why a save or load failed."""

    NO_DESTINATION = "no_destination"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED = "unsupported"
    NOT_AUTHENTICATED = "not_authenticated"
    BUSY = "busy"
    NOT_FOUND = "not_found"
    IO = "io"


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(ServiceError):
    """Resource not found."""

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code="NOT_FOUND",
        )


class ValidationError(ServiceError):
    """Input rejected at the point of mutation."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, code="VALIDATION_ERROR")


class ProviderError(ServiceError):
    """The generation service failed."""

    def __init__(
        self,
        message: str,
        kind: ProviderErrorKind = ProviderErrorKind.SERVER_ERROR,
    ):
        self.kind = kind
        super().__init__(message, code="PROVIDER_ERROR")


class PersistenceError(ServiceError):
    """A storage destination failed or is unavailable."""

    def __init__(
        self,
        message: str,
        kind: PersistenceErrorKind = PersistenceErrorKind.IO,
    ):
        self.kind = kind
        super().__init__(message, code="PERSISTENCE_ERROR")
