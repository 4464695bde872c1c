"""
Parley Search Planner - turns the raw user message into a search query

A small non-streaming sub-call asks the model for {"query", "mode"}.
Planning is best-effort: any failure yields the fallback plan
(original message, "search" mode) and the chat carries on.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from errors import ChatError, PlanningError, log_error
from logging_config import log_llm
from services.json_repair import parse_json_object
from services.llm_client import CompletionClient

logger = logging.getLogger(__name__)

PLANNER_INSTRUCTION = (
    "You are a search optimizer. Based on the user's last message, output a JSON object "
    "with two fields: 'query' (the best search query to find the answer) and 'mode' "
    "(either 'search' or 'extract'). Output ONLY valid JSON."
)


class SearchMode(str, Enum):
    SEARCH = "search"
    EXTRACT = "extract"


@dataclass(frozen=True)
class SearchPlan:
    """Refined query and depth mode. Never persisted."""

    query: str
    mode: SearchMode = SearchMode.SEARCH
    fallback: bool = False

    @classmethod
    def default(cls, message: str) -> "SearchPlan":
        return cls(query=message, mode=SearchMode.SEARCH, fallback=True)


def parse_search_plan(raw: str, original_message: str) -> SearchPlan:
    """Parse planner output into a SearchPlan. Never raises.

    Markdown fences are stripped first. Unparseable output, or an object
    without a usable query, gives the fallback plan. A valid query with a
    missing or unknown mode keeps the query in "search" mode.
    """
    data = parse_json_object(raw)
    if data is None:
        return SearchPlan.default(original_message)

    query = data.get("query")
    query = query.strip() if isinstance(query, str) else ""

    mode_value = data.get("mode")
    try:
        mode = SearchMode(str(mode_value).strip().lower()) if mode_value else SearchMode.SEARCH
    except ValueError:
        mode = SearchMode.SEARCH

    if not query:
        return SearchPlan.default(original_message)
    return SearchPlan(query=query, mode=mode)


class SearchPlanner:
    """Best-effort query planning sub-call."""

    def __init__(self, client: CompletionClient, model: str):
        self.client = client
        self.model = model

    @staticmethod
    def build_prompt(context: List[Dict[str, str]], message: str) -> List[Dict[str, str]]:
        return [
            *context,
            {"role": "user", "content": message},
            {"role": "system", "content": PLANNER_INSTRUCTION},
        ]

    async def plan(self, api_key: str, context: List[Dict[str, str]], message: str) -> SearchPlan:
        """Return a plan for ``message``; falls back on any failure."""
        start = time.time()
        log_llm(logger, "start", model=self.model)
        try:
            raw = await self.client.chat(
                api_key,
                self.model,
                self.build_prompt(context, message),
                response_format={"type": "json_object"},
            )
        except ChatError as e:
            log_error(
                logger,
                PlanningError("Search planning failed", details=str(e)),
                context="planner",
                include_traceback=False,
            )
            return SearchPlan.default(message)
        except Exception as e:
            log_error(logger, PlanningError("Search planning failed", details=repr(e)), context="planner")
            return SearchPlan.default(message)

        log_llm(logger, "end", model=self.model, duration=time.time() - start)
        plan = parse_search_plan(raw, message)
        if plan.fallback:
            logger.warning(f"Search plan unusable, falling back to raw query: {raw[:200]!r}")
        return plan
