"""
Parley Chat Orchestration - streaming, tool-augmented chat completion

Components:
- ContextBuilder: Base history plus tool prompt injection
- SearchPlanner: Query refinement sub-call (best-effort)
- SearchExecutor: Web search, placeholder message, results injection
- StreamConsumer: SSE read loop with rate-limited persistence
- TitleGenerator: Background conversation naming
- ChatOrchestrator: Wires the stages together for one request

Context order sent upstream:
    [search?, canvas?, code?, ...history (newest N), user]

Search planning and the search call never fail the chat; a missing search
credential does, before any network call.
"""

from .tools import Tool, parse_tools
from .context import ContextBuilder, ContextTurn
from .planner import SearchMode, SearchPlan, SearchPlanner, parse_search_plan
from .search import SearchExecutor, SearchOutcome, format_search_context, placeholder_body
from .stream import StreamConsumer, StreamResult, StreamState, parse_sse_line
from .title import TitleGenerator, clean_title
from .orchestrator import ChatOrchestrator, ChatRequest, ChatResponse

__all__ = [
    "Tool",
    "parse_tools",
    "ContextBuilder",
    "ContextTurn",
    "SearchMode",
    "SearchPlan",
    "SearchPlanner",
    "parse_search_plan",
    "SearchExecutor",
    "SearchOutcome",
    "format_search_context",
    "placeholder_body",
    "StreamConsumer",
    "StreamResult",
    "StreamState",
    "parse_sse_line",
    "TitleGenerator",
    "clean_title",
    "ChatOrchestrator",
    "ChatRequest",
    "ChatResponse",
]
