"""
Parley Search Router - standalone web search

The same provider call the chat pipeline makes, exposed on its own. Unlike
the in-chat search stage, failures here are reported to the caller.
"""

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from config import search_api_key, SEARCH_KEY_ENV_VAR
from errors import ConfigurationError
from logging_config import log_tool
from .chat_orchestration import SearchMode

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class SearchBody(BaseModel):
    query: str = Field(..., min_length=1)
    mode: SearchMode = SearchMode.SEARCH


@router.post("/search")
async def search(request: Request, body: SearchBody):
    api_key = search_api_key()
    if not api_key:
        raise ConfigurationError(
            "Search API key not configured",
            details=f"Set {SEARCH_KEY_ENV_VAR}",
            setting=SEARCH_KEY_ENV_VAR,
        )

    log_tool(logger, "search", "start", query=repr(body.query), mode=body.mode.value)
    data = await request.app.state.search_client.search(api_key, body.query, body.mode.value)
    results = data.get("results", [])
    log_tool(logger, "search", "end", results=len(results))
    return {"query": body.query, "mode": body.mode.value, "answer": data.get("answer"), "results": results}
