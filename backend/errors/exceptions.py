"""
Custom exception hierarchy for the MoonTV advisor.

All exceptions inherit from AdvisorError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- status_code: HTTP status used when the error reaches the endpoint
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class AdvisorError(Exception):
    """Base exception for all advisor errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        status_code: HTTP status for the JSON error response
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class AuthenticationError(AdvisorError):
    """Caller is not logged in or the session token is invalid."""

    code = ErrorCode.AUTH_REQUIRED
    recoverable = True
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[str] = None, invalid_token: bool = False, **context: Any):
        code = ErrorCode.AUTH_INVALID_TOKEN if invalid_token else ErrorCode.AUTH_REQUIRED
        super().__init__(message, details, code=code, **context)


class PermissionDeniedError(AdvisorError):
    """Caller is logged in but their role may not use the feature."""

    code = ErrorCode.AUTH_FORBIDDEN
    recoverable = False
    status_code = 403

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        username: Optional[str] = None,
        role: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if username:
            ctx["username"] = username
        if role:
            ctx["role"] = role
        super().__init__(message, details, **ctx)


class ConfigurationError(AdvisorError):
    """Feature disabled or provider settings incomplete."""

    code = ErrorCode.CONFIG_MISSING_KEY
    recoverable = False
    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        setting: Optional[str] = None,
        disabled: bool = False,
        **context: Any,
    ):
        code = ErrorCode.CONFIG_FEATURE_DISABLED if disabled else ErrorCode.CONFIG_MISSING_KEY
        ctx = {**context}
        if setting:
            ctx["setting"] = setting
        super().__init__(message, details, code=code, **ctx)


class ValidationError(AdvisorError):
    """Error during request validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True
    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class LLMError(AdvisorError):
    """Error during LLM interactions."""

    code = ErrorCode.LLM_UNAVAILABLE
    recoverable = False
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        model: Optional[str] = None,
        error_type: Optional[str] = None,
        upstream_status: Optional[int] = None,
        **context: Any,
    ):
        # Set appropriate code based on error type
        if error_type == "timeout":
            code = ErrorCode.LLM_TIMEOUT
        elif error_type == "parse":
            code = ErrorCode.LLM_PARSE_FAILED
        elif error_type == "status":
            code = ErrorCode.LLM_UPSTREAM_STATUS
        else:
            code = ErrorCode.LLM_UNAVAILABLE

        ctx = {**context}
        if model:
            ctx["model"] = model
        if upstream_status:
            ctx["upstream_status"] = upstream_status
        super().__init__(message, details, code=code, **ctx)


class ExternalServiceError(AdvisorError):
    """Error with a metadata or search provider (web search, Douban, TMDB)."""

    code = ErrorCode.EXTERNAL_NETWORK_ERROR
    recoverable = True
    status_code = 502

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        # Set appropriate code based on service
        if service == "web_search":
            code = ErrorCode.EXTERNAL_WEB_SEARCH_FAILED
        elif service == "douban":
            code = ErrorCode.EXTERNAL_DOUBAN_FAILED
        elif service == "tmdb":
            code = ErrorCode.EXTERNAL_TMDB_FAILED
        else:
            code = ErrorCode.EXTERNAL_NETWORK_ERROR

        ctx = {**context}
        if service:
            ctx["service"] = service
        if status_code:
            ctx["upstream_status"] = status_code
        super().__init__(message, details, code=code, **ctx)


class StreamError(AdvisorError):
    """Upstream stream dropped while relaying to the browser."""

    code = ErrorCode.STREAM_READ_FAILED
    recoverable = True
    status_code = 502
