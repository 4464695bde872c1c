"""
Error codes for Parley.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for Parley.

    Categories:
    - CONFIG_*: Missing or invalid configuration (credentials, settings)
    - UPSTREAM_*: Completion provider failures
    - PLANNING_*: Search planning sub-call failures
    - SEARCH_*: Web search provider failures
    - STREAM_*: Server-sent event decoding problems
    - BACKGROUND_*: Fire-and-forget task failures
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Configuration errors (pre-flight, no network call issued)
    CONFIG_MISSING_CREDENTIAL = "CONFIG_MISSING_CREDENTIAL"
    CONFIG_INVALID_VALUE = "CONFIG_INVALID_VALUE"

    # Completion provider errors
    UPSTREAM_REQUEST_FAILED = "UPSTREAM_REQUEST_FAILED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"

    # Best-effort tool errors
    PLANNING_FAILED = "PLANNING_FAILED"
    SEARCH_FAILED = "SEARCH_FAILED"
    SEARCH_TIMEOUT = "SEARCH_TIMEOUT"

    # Stream decoding (recoverable per line)
    STREAM_DECODE_FAILED = "STREAM_DECODE_FAILED"

    # Background work
    BACKGROUND_TASK_FAILED = "BACKGROUND_TASK_FAILED"

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_CONVERSATION = "NOT_FOUND_CONVERSATION"
    NOT_FOUND_MESSAGE = "NOT_FOUND_MESSAGE"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"
