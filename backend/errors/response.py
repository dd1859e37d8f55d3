"""
Standard error response builders for the MoonTV advisor.

Every non-streaming failure of the chat endpoint leaves through here so the
browser always sees the same `{"error": ...}` body shape.
"""

from typing import Optional

from fastapi.responses import JSONResponse

from .codes import ErrorCode
from .exceptions import AdvisorError


def error_response(error: AdvisorError | Exception, include_context: bool = False) -> dict:
    """Build a standard error body.

    Args:
        error: The exception to convert to a response
        include_context: Whether to include the context dict (off by default for privacy)

    Returns:
        Dict with a human-readable ``error`` string plus code and details

    Example:
        >>> from errors import ConfigurationError, error_response
        >>> err = ConfigurationError("AI feature is disabled", disabled=True)
        >>> error_response(err)
        {
            "error": "AI feature is disabled",
            "code": "CONFIG_FEATURE_DISABLED",
            "details": None,
        }
    """
    if isinstance(error, AdvisorError):
        body = {
            "error": error.message,
            "code": error.code.value,
            "details": error.details,
        }
        if include_context and error.context:
            body["context"] = error.context
        return body

    # Fallback for unexpected exceptions
    return {
        "error": "AI chat request failed",
        "code": ErrorCode.INTERNAL_UNEXPECTED.value,
        "details": str(error),
    }


def http_error_response(error: AdvisorError | Exception, status_code: Optional[int] = None) -> JSONResponse:
    """Wrap error_response() in a JSONResponse with the error's HTTP status."""
    if status_code is None:
        status_code = error.status_code if isinstance(error, AdvisorError) else 500
    return JSONResponse(status_code=status_code, content=error_response(error))
