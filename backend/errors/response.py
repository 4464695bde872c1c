"""
JSON error bodies for the Parley API.

Every ChatError that reaches a client is rendered as:

    {"success": false, "error": {code, message, details, stage, recoverable, context}}

Any other exception becomes INTERNAL_UNEXPECTED carrying only its message.
"""

from typing import Any, Dict, Optional

from .codes import ErrorCode
from .exceptions import ChatError

# Context keys that can echo raw provider output back to the caller
_PRIVATE_CONTEXT_KEYS = frozenset({"line"})


def public_context(context: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop context entries that should stay in the logs."""
    if not context:
        return None
    visible = {k: v for k, v in context.items() if k not in _PRIVATE_CONTEXT_KEYS}
    return visible or None


def error_response(error: ChatError | Exception, stage: Optional[str] = None, include_context: bool = True) -> dict:
    """Build the error body returned to API clients.

    Example:
        >>> err = ConfigurationError("No completion API key configured", setting="GROQ_API_KEY")
        >>> error_response(err, stage="chat")["error"]["code"]
        'CONFIG_MISSING_CREDENTIAL'
    """
    if isinstance(error, ChatError):
        body = error.to_dict()
        body["context"] = public_context(error.context) if include_context else None
    else:
        body = {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": str(error) or type(error).__name__,
            "details": None,
            "recoverable": False,
            "context": None,
        }
    body["stage"] = stage
    return {"success": False, "error": body}
