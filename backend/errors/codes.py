"""
Error codes for the MoonTV advisor service.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the advisor.

    Categories:
    - AUTH_*: Caller identity and role errors
    - CONFIG_*: Feature toggles and missing provider settings
    - VALIDATION_*: Request body validation errors
    - LLM_*: Language model errors
    - EXTERNAL_*: Data source (web search, Douban, TMDB) errors
    - STREAM_*: Streaming relay errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Auth errors (gate before any provider call)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"

    # Configuration errors
    CONFIG_FEATURE_DISABLED = "CONFIG_FEATURE_DISABLED"
    CONFIG_MISSING_KEY = "CONFIG_MISSING_KEY"
    CONFIG_INVALID_PROVIDER = "CONFIG_INVALID_PROVIDER"

    # Validation errors (request body)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # LLM errors (model interactions)
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_PARSE_FAILED = "LLM_PARSE_FAILED"
    LLM_UPSTREAM_STATUS = "LLM_UPSTREAM_STATUS"

    # External data source errors
    EXTERNAL_WEB_SEARCH_FAILED = "EXTERNAL_WEB_SEARCH_FAILED"
    EXTERNAL_DOUBAN_FAILED = "EXTERNAL_DOUBAN_FAILED"
    EXTERNAL_TMDB_FAILED = "EXTERNAL_TMDB_FAILED"
    EXTERNAL_NETWORK_ERROR = "EXTERNAL_NETWORK_ERROR"

    # Stream relay errors
    STREAM_READ_FAILED = "STREAM_READ_FAILED"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
