"""
Parley Chat Tools - tool identifiers and their system prompts

Clients send tools as free-form strings. parse_tools() converts them once,
at the API boundary, into a closed set of Tool variants; everything past
that point switches on the enum. Unknown identifiers are dropped.
"""

import logging
from enum import Enum
from typing import FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)


class Tool(str, Enum):
    CODE_INTERPRETER = "code_interpreter"
    CANVAS = "canvas"
    SEARCH = "search"


CODE_INTERPRETER_PROMPT = (
    "You have access to a Python 3 code interpreter. "
    "To solve calculations, data processing, or logic tasks, WRITE PYTHON CODE "
    "inside a markdown block like ```python ... ```. "
    "The code will be executed and the output shown to the user. "
    "Use print() to output results."
)

CANVAS_PROMPT = (
    "You can generate standalone content blocks called 'Canvas'. "
    'Use <canvas type="widget" title="Title">CONTENT</canvas> for short items '
    "(emails, single functions, brief notes). "
    'Use <canvas type="sidebar" title="Title">CONTENT</canvas> for long articles, '
    "complex code files (e.g. over 15 lines), or full documents. "
    "The user can edit these blocks directly. DO NOT wrap the content inside the tags "
    "with markdown code blocks unless it is part of the content itself. "
    "Choose 'widget' for quick items that don't need a full sidebar, and 'sidebar' for deep work."
)

_VALUES = {t.value: t for t in Tool}


def parse_tools(raw: Optional[Iterable[str]]) -> FrozenSet[Tool]:
    """Convert client tool identifiers into Tool variants, ignoring unknown ones."""
    tools = set()
    for name in raw or ():
        tool = _VALUES.get(str(name).strip().lower())
        if tool is None:
            logger.debug(f"Ignoring unknown tool identifier: {name!r}")
            continue
        tools.add(tool)
    return frozenset(tools)
