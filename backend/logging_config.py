"""
Parley Logging Configuration - colored console output for the chat pipeline

Every pipeline stage logs through a module logger; the helpers below give the
interesting events (turn in, turn out, tool calls, provider calls, stream
stats) a fixed marker and color so a request can be followed by eye.

Usage:
    from logging_config import setup_logging, log_message_in
    setup_logging("DEBUG")
    logger = logging.getLogger(__name__)
    log_message_in(logger, "What's the weather?", tools="search", guest=False)

Colors are dropped when stdout is not a terminal or NO_COLOR is set.
"""

import logging
import os
import sys
from typing import Iterable, Optional, TextIO

# ANSI escape codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Pipeline events
    "MSG_IN": "\033[96m",  # cyan
    "MSG_OUT": "\033[92m",  # green
    "STREAM": "\033[95m",  # magenta
    "TOOL": "\033[93m",  # yellow
    "LLM": "\033[94m",  # blue
    # Levels
    "ERROR": "\033[91m",
    "WARN": "\033[33m",
    "DEBUG": "\033[90m",
}

_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


def _color_enabled(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _paint(color: str, text: str) -> str:
    return f"{COLORS[color]}{text}{COLORS['RESET']}"


class ColorFormatter(logging.Formatter):
    """`HH:MM:SS [LEVL] logger.name: message`, level colored.

    With ``color=False`` the layout is kept and every escape code stripped,
    including the ones the event helpers embed in the message.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "DEBUG",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "ERROR",
    }

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]
        message = record.getMessage()

        if self.color:
            level_color = self.LEVEL_COLORS.get(record.levelno)
            if level_color:
                level = _paint(level_color, level)
            if record.levelno >= logging.CRITICAL:
                level = COLORS["BOLD"] + level
            line = f"{_paint('DIM', timestamp)} [{level}] {_paint('DIM', record.name + ':')} {message}"
        else:
            for code in COLORS.values():
                message = message.replace(code, "")
            line = f"{timestamp} [{level}] {record.name}: {message}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int | str = logging.INFO, stream: Optional[TextIO] = None) -> None:
    """Install a single colored handler on the root logger.

    Args:
        level: Root level, as a logging constant or a name like "DEBUG"
        stream: Output stream (stdout by default)
    """
    stream = stream or sys.stdout
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter(color=_color_enabled(stream)))

    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.handlers = [handler]

    # HTTP client libraries log every request at INFO
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# PIPELINE EVENT HELPERS
# =============================================================================


def _fields(context: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in context.items())


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log an incoming chat turn (message preview plus request flags)."""
    preview = message[:80] + "..." if len(message) > 80 else message
    logger.info(f"{_paint('MSG_IN', '>>> MESSAGE')} {preview} [{_fields(context)}]")


def log_message_out(logger: logging.Logger, chars: int = 0, tools_used: Optional[Iterable[str]] = None) -> None:
    """Log the finished response of a chat turn."""
    tools = ", ".join(tools_used) if tools_used else "none"
    logger.info(f"{_paint('MSG_OUT', '<<< RESPONSE')} tools=[{tools}] chars={chars}")


def log_tool(logger: logging.Logger, tool_name: str, state: str, **context) -> None:
    """Log a tool call boundary.

    Args:
        logger: Logger instance
        tool_name: Tool being run (e.g. "search")
        state: 'start' or 'end'
        **context: Query, mode, result count and so on
    """
    marker = ">>> TOOL" if state == "start" else "<<< TOOL"
    logger.info(f"{_paint('TOOL', marker)} {tool_name} {_fields(context)}".rstrip())


def log_llm(logger: logging.Logger, state: str, model: str = "", duration: float = 0) -> None:
    """Log a completion-provider call boundary ('start' or 'end')."""
    if state == "start":
        logger.info(f"{_paint('LLM', '>>> LLM')} calling {model}")
    else:
        logger.info(f"{_paint('LLM', '<<< LLM')} {model} completed in {duration:.1f}s")


def log_stream(logger: logging.Logger, chars: int, flushes: int, duration: float, cancelled: bool = False) -> None:
    """Log streaming stats once a stream has been consumed."""
    rate = chars / duration if duration > 0 else 0
    suffix = " (cancelled)" if cancelled else ""
    logger.info(
        f"{_paint('STREAM', '[STREAM]')} {chars} chars in {duration:.2f}s "
        f"({rate:.0f} char/s, {flushes} flushes){suffix}"
    )
