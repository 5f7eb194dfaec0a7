"""Translation of SDK and transport failures into ProviderError."""

import httpx
from google.genai import errors as genai_errors

from nanodirector_core_schemas import ProviderError, ProviderErrorKind

# Everything a GeminiClient call can raise for a failed request
PROVIDER_FAILURES = (ProviderError, genai_errors.APIError, httpx.TransportError)

_STATUS_MESSAGES = {
    400: "API Error 400: Bad Request (check inputs)",
    403: "API Error 403: Permission Denied. Check API Key permissions.",
    429: "API Error 429: Rate Limit Exceeded",
}


def _kind_for_status(code: int) -> ProviderErrorKind:
    if code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if code in (401, 403):
        return ProviderErrorKind.PERMISSION_DENIED
    if 400 <= code < 500:
        return ProviderErrorKind.INVALID_REQUEST
    return ProviderErrorKind.SERVER_ERROR


def as_provider_error(exc: Exception, context: str = "") -> ProviderError:
    """Wrap an exception raised by a generation call.

    Args:
        exc: The exception raised by the client
        context: Prefix for the message (e.g. "Script")

    Returns:
        A ProviderError with the matching kind
    """
    prefix = f"{context} Error: " if context else ""

    if isinstance(exc, ProviderError):
        return ProviderError(prefix + exc.message, kind=exc.kind)

    if isinstance(exc, genai_errors.APIError):
        code = exc.code or 500
        message = _STATUS_MESSAGES.get(
            code,
            f"API Error {code}: Server Error" if code >= 500 else f"API Error {code}: {exc.message}",
        )
        return ProviderError(prefix + message, kind=_kind_for_status(code))

    if isinstance(exc, httpx.TransportError):
        return ProviderError(prefix + f"Network failure: {exc}", kind=ProviderErrorKind.NETWORK)

    return ProviderError(prefix + (str(exc) or type(exc).__name__), kind=ProviderErrorKind.SERVER_ERROR)
