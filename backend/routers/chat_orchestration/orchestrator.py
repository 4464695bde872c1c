"""
Parley Chat Orchestrator - one chat request, end to end

Stages, in order:
1. Pre-flight: pick a completion key; if search is requested, require the
   search key. No network call happens before both succeed.
2. Base history: stored conversation (newest N turns) or the guest transcript.
3. Tool prompts: code-interpreter, then canvas, prepended.
4. Search (optional): plan the query, create the placeholder message,
   search, prepend the results message. Both sub-steps are best-effort.
5. Stream: append the user turn, stream the completion with rate-limited
   flushes. On the first turn of a durable conversation the title task is
   spawned right before the read loop.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from config import RuntimeConfig, runtime_config, search_api_key, SEARCH_KEY_ENV_VAR
from errors import ConfigurationError
from logging_config import log_message_in, log_message_out
from services.background import BackgroundTasks
from services.key_pool import KeyPool
from services.llm_client import CompletionClient
from services.search_client import SearchClient
from services.store import InMemoryStore
from .context import ContextBuilder
from .planner import SearchPlan, SearchPlanner
from .search import SearchExecutor
from .stream import StreamConsumer, StreamResult, DeltaCallback, Clock
from .title import TitleGenerator
from .tools import Tool

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """A chat turn as seen by the core (tools already parsed)."""

    message: str
    conversation_id: Optional[str] = None
    tools: FrozenSet[Tool] = frozenset()
    model: Optional[str] = None
    is_guest: bool = False
    guest_history: Optional[List[Mapping[str, str]]] = None
    user_message_id: Optional[str] = None

    @property
    def durable(self) -> bool:
        return not self.is_guest


@dataclass
class ChatResponse:
    text: str
    message_id: Optional[str] = None
    search_plan: Optional[SearchPlan] = None
    search_results: int = 0
    title_dispatched: bool = False
    flushes: int = 0
    cancelled: bool = False
    context: List[Dict[str, str]] = field(default_factory=list)


class ChatOrchestrator:
    """Wires key pool, context builder, search, stream consumer and title task."""

    def __init__(
        self,
        key_pool: KeyPool,
        completion_client: CompletionClient,
        search_client: SearchClient,
        store: InMemoryStore,
        background: Optional[BackgroundTasks] = None,
        config: Optional[RuntimeConfig] = None,
        clock: Clock = time.monotonic,
        search_key_provider: Callable[[], Optional[str]] = search_api_key,
    ):
        self.key_pool = key_pool
        self.completion_client = completion_client
        self.search_client = search_client
        self.store = store
        self.background = background or BackgroundTasks()
        self.config = config or runtime_config
        self.clock = clock
        self.search_key_provider = search_key_provider

    # ── Stage factories (read config per request so runtime updates apply) ──

    def context_builder(self) -> ContextBuilder:
        return ContextBuilder(self.store, window=self.config.history_window)

    def planner(self) -> SearchPlanner:
        return SearchPlanner(self.completion_client, self.config.model_planner)

    def search_executor(self) -> SearchExecutor:
        return SearchExecutor(self.search_client, self.store)

    def stream_consumer(self) -> StreamConsumer:
        return StreamConsumer(
            self.completion_client,
            self.store,
            flush_interval_s=self.config.flush_interval_s,
            clock=self.clock,
        )

    def title_generator(self) -> TitleGenerator:
        return TitleGenerator(self.key_pool, self.completion_client, self.store, self.config.model_title)

    def _require_search_key(self) -> str:
        key = self.search_key_provider()
        if not key:
            raise ConfigurationError(
                "Search tool requested but no search API key configured",
                details=f"Set {SEARCH_KEY_ENV_VAR}",
                setting=SEARCH_KEY_ENV_VAR,
            )
        return key

    def preflight(self, request: ChatRequest) -> Tuple[str, Optional[str]]:
        """Check credentials for a request before anything is written or sent.

        Returns the completion key picked for this request and the search key
        (None unless the search tool was requested).

        Raises:
            ConfigurationError: no completion key, or search requested without a search key
        """
        api_key = self.key_pool.select()
        search_key = self._require_search_key() if Tool.SEARCH in request.tools else None
        return api_key, search_key

    async def run(
        self,
        request: ChatRequest,
        on_delta: Optional[DeltaCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """Answer one chat turn and return the full response text."""
        response = await self.respond(request, on_delta=on_delta, cancel=cancel)
        return response.text

    async def respond(
        self,
        request: ChatRequest,
        on_delta: Optional[DeltaCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ChatResponse:
        """Answer one chat turn, returning the text plus what happened along the way."""
        tool_names = sorted(t.value for t in request.tools)
        log_message_in(
            logger,
            request.message,
            tools=",".join(tool_names) or "none",
            guest=request.is_guest,
            conversation=request.conversation_id,
        )

        # 1. Pre-flight
        api_key, search_key = self.preflight(request)

        write_conversation = request.conversation_id if request.durable else None
        model = request.model or self.config.model_chat

        # 2. Base history
        builder = self.context_builder()
        base = await builder.load_history(
            conversation_id=request.conversation_id,
            is_guest=request.is_guest,
            guest_history=request.guest_history,
            exclude_message_id=request.user_message_id,
        )
        first_turn = request.durable and len(base) <= 1

        # 3. Tool prompts
        context = builder.inject_tool_prompts(base, request.tools)

        # 4. Search
        response = ChatResponse(text="")
        message_id: Optional[str] = None
        persisted_body: Optional[str] = None
        if search_key is not None:
            plan = await self.planner().plan(api_key, [t.to_message() for t in context], request.message)
            outcome = await self.search_executor().execute(
                plan, search_key, conversation_id=write_conversation, model=model
            )
            message_id = outcome.message_id
            persisted_body = outcome.placeholder
            if outcome.system_turn is not None:
                context = builder.prepend(context, outcome.system_turn)
            response.search_plan = plan
            response.search_results = len(outcome.results)

        # 5. Stream
        messages = builder.finalize(context, request.message)
        response.context = messages

        def _dispatch_title() -> None:
            if not first_turn:
                return
            self.background.spawn(
                "title",
                self.title_generator().generate(request.conversation_id, request.message),
            )
            response.title_dispatched = True

        result: StreamResult = await self.stream_consumer().consume(
            api_key,
            model,
            messages,
            conversation_id=write_conversation,
            message_id=message_id,
            persisted_body=persisted_body,
            on_stream_open=_dispatch_title,
            on_delta=on_delta,
            cancel=cancel,
        )

        response.text = result.text
        response.message_id = result.message_id
        response.flushes = result.flushes
        response.cancelled = result.cancelled
        log_message_out(logger, chars=len(result.text), tools_used=tool_names)
        return response
