"""
Error handling decorators and utilities for the MoonTV advisor.

Provides the data-source boundary decorator and the FastAPI exception
handlers that turn AdvisorError into JSON responses.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from fastapi import FastAPI, Request

from .exceptions import AdvisorError
from .response import http_error_response

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def handle_source_errors(source: str, logger: Optional[logging.Logger] = None):
    """Decorator that turns any exception from a data-source call into ``None``.

    Provider adapters are the failure boundary: a timeout, a non-2xx
    response or a malformed payload must never escape into the orchestrator.
    The wrapped coroutine logs the failure and resolves to ``None``.

    Args:
        source: Data source name for log context ("web_search", "douban", "tmdb")
        logger: Optional logger instance (defaults to a source-specific logger)

    Returns:
        Decorated async function that returns None on exception

    Example:
        >>> @handle_source_errors("tmdb")
        ... async def fetch_tmdb(...):
        ...     resp = await client.get(url)
        ...     resp.raise_for_status()
        ...     return resp.json()
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"moontv.{source}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except AdvisorError as e:
                log.warning(f"[{source}] {e.code.value}: {e}")
                return None
            except Exception as e:
                log.warning(f"[{source}] {type(e).__name__}: {e}", exc_info=True)
                return None

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Args:
        logger: Logger instance to use
        error: The exception to log
        context: Optional context string to prefix the message
        include_traceback: Whether to include the full stack trace

    Example:
        >>> log_error(logger, err, context="Chat")
        # Logs: "[Chat] CONFIG_MISSING_KEY: Custom API configuration incomplete"
    """
    if isinstance(error, AdvisorError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON error handlers for AdvisorError and unexpected exceptions."""
    log = logging.getLogger("moontv.errors")

    @app.exception_handler(AdvisorError)
    async def _advisor_error_handler(request: Request, exc: AdvisorError):
        if exc.status_code >= 500:
            log_error(log, exc, context=request.url.path)
        else:
            log.info(f"[{request.url.path}] {exc.code.value}: {exc.message}")
        return http_error_response(exc)

    @app.exception_handler(Exception)
    async def _unexpected_error_handler(request: Request, exc: Exception):
        log_error(log, exc, context=request.url.path)
        return http_error_response(exc)
