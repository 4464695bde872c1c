"""
Shared pytest fixtures for the chat pipeline tests.

All provider traffic goes through one httpx.MockTransport (FakeProvider), so
no test touches the network. Flush timing runs on FakeClock, which the fake
event stream advances between deltas.
"""

import asyncio
import json
import random
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from config import RuntimeConfig
from routers.chat_orchestration import ChatOrchestrator
from services.background import BackgroundTasks
from services.key_pool import KeyPool
from services.llm_client import CompletionClient
from services.search_client import SearchClient
from services.store import InMemoryStore

COMPLETION_URL = "https://llm.test/v1"
SEARCH_URL = "https://search.test/search"

CHAT_MODEL = "chat-model"
PLANNER_MODEL = "planner-model"
TITLE_MODEL = "title-model"

SEARCH_KEY = "tvly-test"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sse_event(delta: str) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": delta}}]})


def completion_json(content: str, model: str) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


def search_result(n: int) -> Dict[str, Any]:
    return {"title": f"Result {n}", "url": f"https://example.com/{n}", "content": f"Snippet {n}"}


class FakeProvider:
    """Completion + search provider behind a MockTransport.

    - Streaming completions replay ``stream_events``: (delay, line) pairs.
      The delay is applied to the clock before the line is sent.
    - Non-streaming completions answer from ``chat_replies`` keyed by model:
      a string is the content, an int is an error status.
    - ``stream_stall`` holds the body open (real seconds) after the last event.
    - Search answers with ``search_body`` / ``search_status``.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.stream_events: List[Tuple[float, str]] = []
        self.stream_status = 200
        self.stream_error_body = '{"error": {"message": "Invalid API Key"}}'
        self.stream_raise: Optional[Exception] = None
        self.stream_stall = 0.0
        self.chat_replies: Dict[str, Any] = {}
        self.search_status = 200
        self.search_body: Any = {"results": []}
        self.search_raise: Optional[Exception] = None

        self.stream_payloads: List[Dict[str, Any]] = []
        self.chat_payloads: List[Dict[str, Any]] = []
        self.search_payloads: List[Dict[str, Any]] = []
        self.auth_headers: List[str] = []

    @property
    def request_count(self) -> int:
        return len(self.stream_payloads) + len(self.chat_payloads) + len(self.search_payloads)

    def add_deltas(self, *deltas: str, gap: float = 0.0, done: bool = True) -> None:
        for i, delta in enumerate(deltas):
            self.stream_events.append((gap if i else 0.0, sse_event(delta)))
        if done:
            self.stream_events.append((0.0, "data: [DONE]"))

    def chat_payloads_for(self, model: str) -> List[Dict[str, Any]]:
        return [p for p in self.chat_payloads if p.get("model") == model]

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")

        if str(request.url) == SEARCH_URL:
            self.search_payloads.append(payload)
            if self.search_raise is not None:
                raise self.search_raise
            if isinstance(self.search_body, (dict, list)):
                return httpx.Response(self.search_status, json=self.search_body)
            return httpx.Response(self.search_status, content=str(self.search_body).encode())

        self.auth_headers.append(request.headers.get("authorization", ""))
        if payload.get("stream"):
            self.stream_payloads.append(payload)
            if self.stream_status != 200:
                return httpx.Response(self.stream_status, content=self.stream_error_body.encode())
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=self._events(),
            )

        self.chat_payloads.append(payload)
        model = payload.get("model", "")
        reply = self.chat_replies.get(model, "")
        if isinstance(reply, int):
            return httpx.Response(reply, json={"error": {"message": "provider failure"}})
        return httpx.Response(200, json=completion_json(reply, model))

    async def _events(self):
        for delay, line in self.stream_events:
            if delay and self.clock is not None:
                self.clock.advance(delay)
            yield f"{line}\n\n".encode()
        if self.stream_stall:
            await asyncio.sleep(self.stream_stall)
        if self.stream_raise is not None:
            raise self.stream_raise


class RecordingStore(InMemoryStore):
    """InMemoryStore that remembers reads and body overwrites."""

    def __init__(self):
        super().__init__()
        self.list_calls: List[str] = []
        self.updates: List[Tuple[str, str]] = []

    async def list_messages(self, conversation_id):
        self.list_calls.append(conversation_id)
        return await super().list_messages(conversation_id)

    async def update_message(self, message_id, body):
        self.updates.append((message_id, body))
        await super().update_message(message_id, body)

    def bodies_for(self, message_id: str) -> List[str]:
        return [body for mid, body in self.updates if mid == message_id]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider(clock):
    return FakeProvider(clock)


@pytest.fixture
def http_client(provider):
    return httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))


@pytest.fixture
def completion_client(http_client):
    return CompletionClient(COMPLETION_URL, timeout=5.0, http_client=http_client)


@pytest.fixture
def search_client(http_client):
    return SearchClient(SEARCH_URL, max_results=5, timeout=5.0, http_client=http_client)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def test_config():
    config = RuntimeConfig()
    config.model_chat = CHAT_MODEL
    config.model_planner = PLANNER_MODEL
    config.model_title = TITLE_MODEL
    config.history_window = 20
    config.flush_interval_ms = 100
    return config


@pytest.fixture
def key_pool():
    return KeyPool(["gsk-test"], rng=random.Random(7))


@pytest.fixture
def make_orchestrator(completion_client, search_client, store, test_config, clock, key_pool):
    """Factory so tests can swap the key pool or the search credential."""

    def _make(pool: Optional[KeyPool] = None, search_key: Optional[str] = SEARCH_KEY) -> ChatOrchestrator:
        return ChatOrchestrator(
            pool if pool is not None else key_pool,
            completion_client,
            search_client,
            store,
            background=BackgroundTasks(),
            config=test_config,
            clock=clock,
            search_key_provider=lambda: search_key,
        )

    return _make
