"""
Parley Services - Shared infrastructure services.

- key_pool: Random credential selection for the completion provider
- llm_client: OpenAI-compatible completion client (streaming and not)
- search_client: Web search provider client
- store: In-memory conversation/message store
- background: Fire-and-forget task runner
"""

from .key_pool import KeyPool
from .store import InMemoryStore
from .background import BackgroundTasks

__all__ = ["KeyPool", "InMemoryStore", "BackgroundTasks"]
