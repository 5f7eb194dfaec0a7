"""Service layer exceptions."""

from nanodirector_core_schemas.exceptions import (
    NotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    ProviderError,
    ProviderErrorKind,
    ServiceError,
    ValidationError,
)

__all__ = [
    "NotFoundError",
    "PersistenceError",
    "PersistenceErrorKind",
    "ProviderError",
    "ProviderErrorKind",
    "ServiceError",
    "ValidationError",
]
