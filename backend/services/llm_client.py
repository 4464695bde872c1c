"""
LLM Client - talks to an OpenAI-compatible completion provider (Groq by default).

Two call shapes:
- chat(): non-streaming, through the OpenAI SDK. Used by the search planner
  and the title generator.
- stream(): raw server-sent events over httpx. Yields decoded lines so the
  stream consumer owns event parsing, flush timing and cancellation.

Every call takes the API key explicitly: the key pool picks one per request.
No call is retried automatically.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from errors import UpstreamError

logger = logging.getLogger(__name__)


def _status_error_body(error: openai.APIStatusError) -> str:
    """Best-effort provider body text from an SDK status error."""
    try:
        return error.response.text
    except Exception:
        return error.message


class CompletionClient:
    """Async client for /chat/completions on an OpenAI-compatible provider."""

    def __init__(self, base_url: str, timeout: float = 120.0, http_client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            base_url: Provider API root (e.g. "https://api.groq.com/openai/v1")
            timeout: Request timeout in seconds
            http_client: Shared httpx client (tests inject one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _sdk(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            http_client=self._http,
            timeout=self._timeout,
            max_retries=0,
        )

    async def chat(
        self,
        api_key: str,
        model: str,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Non-streaming chat completion.

        Returns:
            The first choice's message content ("" when the provider sent none)

        Raises:
            UpstreamError: on a non-success status or transport failure
        """
        kwargs: Dict[str, Any] = {}
        if response_format:
            kwargs["response_format"] = response_format

        try:
            completion = await self._sdk(api_key).chat.completions.create(
                model=model,
                messages=messages,
                stream=False,
                **kwargs,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(
                f"Completion provider returned status {e.status_code}",
                status_code=e.status_code,
                body=_status_error_body(e),
                model=model,
            ) from e
        except openai.APITimeoutError as e:
            raise UpstreamError("Completion request timed out", error_type="timeout", model=model) from e
        except openai.APIConnectionError as e:
            raise UpstreamError(
                "Completion provider unreachable", details=str(e), error_type="connection", model=model
            ) from e

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    @asynccontextmanager
    async def stream(self, api_key: str, model: str, messages: List[Dict[str, str]]) -> AsyncIterator[AsyncIterator[str]]:
        """Open a streaming chat completion.

        Usage:
            async with client.stream(key, model, messages) as lines:
                async for line in lines:
                    ...

        The context is only entered once the provider has answered with a
        success status. Transport failures while reading surface as
        UpstreamError from the iteration.

        Raises:
            UpstreamError: non-success initial response (with the provider body),
                timeout, or connection failure
        """
        payload = {"model": model, "messages": messages, "stream": True}
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

        try:
            async with self._http.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self._timeout,
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamError(
                        f"Completion API error: {body}",
                        status_code=response.status_code,
                        body=body,
                        model=model,
                    )
                yield response.aiter_lines()
        except httpx.TimeoutException as e:
            raise UpstreamError("Completion stream timed out", error_type="timeout", model=model) from e
        except httpx.TransportError as e:
            raise UpstreamError(
                "Completion stream interrupted", details=str(e), error_type="connection", model=model
            ) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
