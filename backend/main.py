"""
Parley - Streaming Tool-Augmented Chat
FastAPI Backend over an OpenAI-compatible completion provider + web search
"""

from contextlib import asynccontextmanager
import logging
import uuid

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import runtime_config, search_api_key
from errors import register_exception_handlers
from logging_config import setup_logging
from routers import chat, search
from routers.chat_orchestration import ChatOrchestrator
from services.background import BackgroundTasks
from services.key_pool import KeyPool
from services.llm_client import CompletionClient
from services.search_client import SearchClient
from services.store import InMemoryStore

setup_logging(runtime_config.log_level)
logger = logging.getLogger(__name__)

# Instance ID - changes on every startup, used by clients to detect restarts
INSTANCE_ID = str(uuid.uuid4())

# Seconds to wait for title tasks on shutdown
SHUTDOWN_DRAIN_TIMEOUT = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    http_client = httpx.AsyncClient(timeout=runtime_config.llm_timeout_s)
    key_pool = KeyPool.from_env()
    if not len(key_pool):
        logger.warning("No completion API key configured - chat requests will fail until one is set")
    if not search_api_key():
        logger.info("Search API key not configured - search tool disabled")

    completion_client = CompletionClient(
        runtime_config.completion_api_url,
        timeout=runtime_config.llm_timeout_s,
        http_client=http_client,
    )
    search_client = SearchClient(
        runtime_config.search_api_url,
        max_results=runtime_config.search_max_results,
        timeout=runtime_config.search_timeout_s,
        http_client=http_client,
    )
    store = InMemoryStore()
    background = BackgroundTasks()

    app.state.store = store
    app.state.background = background
    app.state.search_client = search_client
    app.state.orchestrator = ChatOrchestrator(
        key_pool,
        completion_client,
        search_client,
        store,
        background=background,
        config=runtime_config,
    )
    logger.info(f"Parley ready (chat model: {runtime_config.model_chat})")

    yield

    # Shutdown
    await background.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    await http_client.aclose()
    logger.info("Parley signing off")


app = FastAPI(
    title="Parley",
    description="Streaming chat with code, canvas and web search tools",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# CORS - restrict to localhost and private network IPs on port 3000
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1|192\.168\.\d+\.\d+):3000$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, tags=["chat"])
app.include_router(search.router, tags=["search"])


@app.get("/health")
async def health():
    """Health check - reports which provider credentials are configured."""
    orchestrator = getattr(app.state, "orchestrator", None)
    completion_keys = len(orchestrator.key_pool) if orchestrator else 0
    checks = {
        "completion": "ok" if completion_keys else "unconfigured",
        "search": "ok" if search_api_key() else "unconfigured",
    }
    return {
        "status": "healthy" if completion_keys else "degraded",
        "service": "parley",
        "instance_id": INSTANCE_ID,
        "checks": checks,
        "background_tasks": orchestrator.background.pending if orchestrator else 0,
        "config": runtime_config.to_dict(),
    }
