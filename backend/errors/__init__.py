"""
MoonTV Advisor Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the chat service.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        AdvisorError,
        AuthenticationError,
        PermissionDeniedError,
        ConfigurationError,
        ValidationError,
        LLMError,
        ExternalServiceError,
        StreamError,

        # Response builders
        error_response,
        http_error_response,

        # Decorators / wiring
        handle_source_errors,
        log_error,
        register_exception_handlers,
    )

Example:
    from errors import handle_source_errors, ExternalServiceError

    @handle_source_errors("douban")
    async def fetch_detail(client, subject_id):
        resp = await client.get(f"{DOUBAN_API}/subject/{subject_id}")
        if resp.status_code != 200:
            raise ExternalServiceError(
                "Douban request failed",
                service="douban",
                status_code=resp.status_code,
            )
        return resp.json()
"""

from .codes import ErrorCode
from .exceptions import (
    AdvisorError,
    AuthenticationError,
    PermissionDeniedError,
    ConfigurationError,
    ValidationError,
    LLMError,
    ExternalServiceError,
    StreamError,
)
from .response import (
    error_response,
    http_error_response,
)
from .handlers import (
    handle_source_errors,
    log_error,
    register_exception_handlers,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "AdvisorError",
    "AuthenticationError",
    "PermissionDeniedError",
    "ConfigurationError",
    "ValidationError",
    "LLMError",
    "ExternalServiceError",
    "StreamError",
    # Response builders
    "error_response",
    "http_error_response",
    # Decorators / wiring
    "handle_source_errors",
    "log_error",
    "register_exception_handlers",
]
