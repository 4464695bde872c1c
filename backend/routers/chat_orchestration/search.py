"""
Parley Search Executor - web search and results injection

Runs the planned query against the search provider and turns the result set
into a system message that tells the model to cite sources by URL.

For durable sessions this is also where the outgoing AI message is first
created, with a "Searching..." placeholder, so a client watching the
conversation sees feedback before the completion starts.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import ChatError, SearchError, log_error
from logging_config import log_tool
from services.search_client import SearchClient
from services.store import MessageStore, AUTHOR_AI
from .context import ContextTurn
from .planner import SearchPlan

logger = logging.getLogger(__name__)


def placeholder_body(query: str) -> str:
    return f'Searching with query: "{query}"...'


def format_search_context(plan: SearchPlan, results: List[Dict[str, Any]]) -> str:
    """System message body carrying the results and citation instructions."""
    return (
        f'Search Results for "{plan.query}" (Mode: {plan.mode.value}):\n{json.dumps(results)}\n\n'
        "INSTRUCTIONS: Use the provided search results to answer the user. "
        "ALWAYS cite your sources inline or at the end using markdown links with the format [[Title](URL)]. "
        "Ensure the URLs match the 'url' field in the provided JSON."
    )


@dataclass
class SearchOutcome:
    """What the search stage hands back to the orchestrator."""

    message_id: Optional[str] = None
    placeholder: Optional[str] = None
    results: List[Dict[str, Any]] = field(default_factory=list)
    system_turn: Optional[ContextTurn] = None

    @property
    def succeeded(self) -> bool:
        return self.system_turn is not None


class SearchExecutor:
    """Best-effort search stage."""

    def __init__(self, client: SearchClient, message_store: Optional[MessageStore]):
        self.client = client
        self.message_store = message_store

    async def execute(
        self,
        plan: SearchPlan,
        api_key: str,
        conversation_id: Optional[str] = None,
        model: Optional[str] = None,
    ) -> SearchOutcome:
        """Create the placeholder (durable sessions only), then search.

        A provider failure is logged and yields an outcome without a system
        turn. Store failures propagate.
        """
        outcome = SearchOutcome()

        if conversation_id and self.message_store is not None:
            outcome.placeholder = placeholder_body(plan.query)
            outcome.message_id = await self.message_store.create_message(
                conversation_id, AUTHOR_AI, outcome.placeholder, model=model
            )

        log_tool(logger, "search", "start", query=repr(plan.query), mode=plan.mode.value)
        try:
            data = await self.client.search(api_key, plan.query, plan.mode.value)
        except ChatError as e:
            log_error(logger, e, context="search", include_traceback=False)
            log_tool(logger, "search", "end", success=False)
            return outcome
        except Exception as e:
            log_error(logger, SearchError("Search failed", details=repr(e)), context="search")
            log_tool(logger, "search", "end", success=False)
            return outcome

        outcome.results = data.get("results", [])
        outcome.system_turn = ContextTurn.system(format_search_context(plan, outcome.results))
        log_tool(logger, "search", "end", results=len(outcome.results))
        return outcome
