"""
Web Search Client - Tavily search API over httpx.

"search" mode asks for a shallow lookup; "extract" mode asks for deeper
crawling and the raw page content of each result.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import SearchError

logger = logging.getLogger(__name__)

SEARCH_MODES = ("search", "extract")


def build_search_payload(api_key: str, query: str, mode: str, max_results: int) -> Dict[str, Any]:
    """Request body for the search provider."""
    extract = mode == "extract"
    return {
        "api_key": api_key,
        "query": query,
        "search_depth": "advanced" if extract else "basic",
        "include_answer": True,
        "max_results": max_results,
        "topic": "general",
        "include_images": False,
        "include_raw_content": extract,
    }


class SearchClient:
    """Async Tavily client."""

    def __init__(
        self,
        api_url: str,
        max_results: int = 5,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.max_results = max(1, int(max_results))
        self._timeout = timeout
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def search(self, api_key: str, query: str, mode: str = "search") -> Dict[str, Any]:
        """Run one search.

        Returns:
            The provider's JSON body. ``results`` is always a list.

        Raises:
            SearchError: on timeout, connection failure, non-success status or a
                body that is not a JSON object
        """
        payload = build_search_payload(api_key, query, mode, self.max_results)

        try:
            response = await self._http.post(self.api_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise SearchError(
                "Search service error",
                details=f"Search provider returned status {status_code}",
                status_code=status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            raise SearchError(
                "Search service timed out",
                details="The search request took too long.",
                error_type="timeout",
            ) from exc
        except httpx.RequestError as exc:
            raise SearchError("Search service unavailable", details=str(exc)) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchError("Search service returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise SearchError("Search service returned an unexpected body", details=type(data).__name__)

        results: List[Dict[str, Any]] = data.get("results") or []
        data["results"] = [r for r in results if isinstance(r, dict)]
        logger.debug(f"Search returned {len(data['results'])} results for {query!r} (mode={mode})")
        return data

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
