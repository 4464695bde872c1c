"""
Parley Error Handling Module

Error codes, the ChatError hierarchy, JSON error bodies and the FastAPI
handlers that return them.

Usage:
    from errors import ConfigurationError, UpstreamError, log_error

Fatal errors (ConfigurationError, UpstreamError) abort a chat request.
Best-effort errors (PlanningError, SearchError, StreamDecodeError,
BackgroundTaskError) are logged and the pipeline degrades gracefully.
ValidationError and NotFoundError come from the HTTP layer and the store.
"""

from .codes import ErrorCode
from .exceptions import (
    ChatError,
    ConfigurationError,
    UpstreamError,
    PlanningError,
    SearchError,
    StreamDecodeError,
    BackgroundTaskError,
    ValidationError,
    NotFoundError,
)
from .response import error_response, public_context
from .handlers import (
    log_error,
    register_exception_handlers,
    status_for,
)

__all__ = [
    "ErrorCode",
    # Fatal
    "ChatError",
    "ConfigurationError",
    "UpstreamError",
    # Best-effort
    "PlanningError",
    "SearchError",
    "StreamDecodeError",
    "BackgroundTaskError",
    # Request / lookup
    "ValidationError",
    "NotFoundError",
    # Responses
    "error_response",
    "public_context",
    "log_error",
    "register_exception_handlers",
    "status_for",
]
