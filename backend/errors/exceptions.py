"""
Custom exception hierarchy for Parley.

All exceptions inherit from ChatError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the pipeline (or the user) can carry on
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class ChatError(Exception):
    """Base exception for all Parley errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be worked around
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

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


class ConfigurationError(ChatError):
    """A required credential or setting is missing. Raised before any network call."""

    code = ErrorCode.CONFIG_MISSING_CREDENTIAL
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        setting: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if setting:
            ctx["setting"] = setting
        super().__init__(message, details, **ctx)


class UpstreamError(ChatError):
    """Non-success response (or transport failure) from the completion provider."""

    code = ErrorCode.UPSTREAM_REQUEST_FAILED
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        if error_type == "timeout":
            code = ErrorCode.UPSTREAM_TIMEOUT
        elif error_type == "connection":
            code = ErrorCode.UPSTREAM_UNAVAILABLE
        else:
            code = ErrorCode.UPSTREAM_REQUEST_FAILED

        self.status_code = status_code
        self.body = body

        ctx = {**context}
        if status_code:
            ctx["status_code"] = status_code
        super().__init__(message, details if details is not None else body, code=code, **ctx)


class PlanningError(ChatError):
    """Search planning sub-call failed. The planner falls back to the raw query."""

    code = ErrorCode.PLANNING_FAILED
    recoverable = True


class SearchError(ChatError):
    """Web search provider call failed. The pipeline continues without search context."""

    code = ErrorCode.SEARCH_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        code = ErrorCode.SEARCH_TIMEOUT if error_type == "timeout" else ErrorCode.SEARCH_FAILED

        ctx = {**context}
        if status_code:
            ctx["status_code"] = status_code
        super().__init__(message, details, code=code, **ctx)


class StreamDecodeError(ChatError):
    """A single server-sent event line could not be decoded."""

    code = ErrorCode.STREAM_DECODE_FAILED
    recoverable = True

    def __init__(self, message: str, details: Optional[str] = None, line: Optional[str] = None, **context: Any):
        ctx = {**context}
        if line is not None:
            ctx["line"] = line[:200]
        super().__init__(message, details, **ctx)


class BackgroundTaskError(ChatError):
    """A fire-and-forget task failed. Never surfaces to the caller."""

    code = ErrorCode.BACKGROUND_TASK_FAILED
    recoverable = True

    def __init__(self, message: str, details: Optional[str] = None, task: Optional[str] = None, **context: Any):
        ctx = {**context}
        if task:
            ctx["task"] = task
        super().__init__(message, details, **ctx)


class ValidationError(ChatError):
    """A request is missing a field or carries one in the wrong shape."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

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


class NotFoundError(ChatError):
    """A conversation or message id does not exist in the store."""

    code = ErrorCode.NOT_FOUND_CONVERSATION
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        code = ErrorCode.NOT_FOUND_MESSAGE if resource_type == "message" else ErrorCode.NOT_FOUND_CONVERSATION

        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, code=code, **ctx)
