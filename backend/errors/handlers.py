"""
Error handling utilities for Parley.

Consistent error logging and the FastAPI exception handlers that turn
ChatError subclasses into standard JSON error responses.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .codes import ErrorCode
from .exceptions import ChatError
from .response import error_response

# HTTP status per error category
_STATUS_BY_PREFIX = {
    "CONFIG_": 503,
    "UPSTREAM_": 502,
    "SEARCH_": 502,
    "PLANNING_": 502,
    "VALIDATION_": 400,
    "NOT_FOUND_": 404,
}


def status_for(error: ChatError) -> int:
    """Map an error code to the HTTP status returned to API clients."""
    if error.code == ErrorCode.UPSTREAM_TIMEOUT:
        return 504
    for prefix, status in _STATUS_BY_PREFIX.items():
        if error.code.value.startswith(prefix):
            return status
    return 500


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
        >>> log_error(logger, err, context="search")
        # Logs: "[search] SEARCH_FAILED: Search provider returned status 500"
    """
    if isinstance(error, ChatError):
        message = f"{error.code.value}: {error}"
    else:
        message = str(error) or type(error).__name__

    if context:
        message = f"[{context}] {message}"

    if isinstance(error, ChatError) and error.recoverable:
        logger.warning(message, exc_info=include_traceback)
    else:
        logger.error(message, exc_info=include_traceback)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the ChatError -> JSON response handler on an app."""
    logger = logging.getLogger("parley.api")

    @app.exception_handler(ChatError)
    async def _chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        log_error(logger, exc, context=request.url.path, include_traceback=False)
        return JSONResponse(status_code=status_for(exc), content=error_response(exc))
