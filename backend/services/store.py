"""
Parley Storage Interfaces - collaborator contracts for the chat core

The orchestrator only needs three narrow capabilities from storage:
- HistoryStore: ordered read of a conversation's messages
- MessageStore: create a message, then overwrite its body
- ConversationStore: rename a conversation

Any backing database can implement these. InMemoryStore is the reference
implementation used by the bundled API and the test suite.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Protocol, runtime_checkable

from errors import NotFoundError

logger = logging.getLogger(__name__)

AUTHOR_USER = "user"
AUTHOR_AI = "ai"

DEFAULT_CONVERSATION_TITLE = "New Chat"


@dataclass
class StoredMessage:
    """One persisted chat message."""

    id: str
    conversation_id: str
    author: str
    body: str
    timestamp: float = field(default_factory=time.time)
    model: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Conversation:
    """A durable conversation."""

    id: str
    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


@runtime_checkable
class HistoryStore(Protocol):
    async def list_messages(self, conversation_id: str) -> List[StoredMessage]:
        """Messages of a conversation, ascending by arrival."""
        ...


@runtime_checkable
class MessageStore(Protocol):
    async def create_message(
        self, conversation_id: str, author: str, body: str, model: Optional[str] = None
    ) -> str:
        """Persist a new message and return its id."""
        ...

    async def update_message(self, message_id: str, body: str) -> None:
        """Overwrite the body of an existing message."""
        ...


@runtime_checkable
class ConversationStore(Protocol):
    async def update_title(self, conversation_id: str, title: str) -> None:
        ...


class InMemoryStore:
    """Process-local store implementing all three collaborator interfaces.

    Message ids are monotonically increasing, so listing by insertion order
    is listing by arrival.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, StoredMessage] = {}
        self._by_conversation: Dict[str, List[str]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    # ── Conversations ──

    async def create_conversation(self, title: str = DEFAULT_CONVERSATION_TITLE) -> Conversation:
        async with self._lock:
            conversation = Conversation(id=self._next_id("conv"), title=title)
            self._conversations[conversation.id] = conversation
            self._by_conversation[conversation.id] = []
        logger.debug(f"Created conversation {conversation.id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", resource_type="conversation", resource_id=conversation_id)
        return conversation

    async def update_title(self, conversation_id: str, title: str) -> None:
        conversation = await self.get_conversation(conversation_id)
        conversation.title = title

    # ── Messages ──

    async def list_messages(self, conversation_id: str) -> List[StoredMessage]:
        ids = self._by_conversation.get(conversation_id, [])
        return [self._messages[mid] for mid in ids]

    async def create_message(
        self, conversation_id: str, author: str, body: str, model: Optional[str] = None
    ) -> str:
        async with self._lock:
            message = StoredMessage(
                id=self._next_id("msg"),
                conversation_id=conversation_id,
                author=author,
                body=body,
                model=model,
            )
            self._messages[message.id] = message
            self._by_conversation.setdefault(conversation_id, []).append(message.id)
        return message.id

    async def get_message(self, message_id: str) -> StoredMessage:
        message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError("Message not found", resource_type="message", resource_id=message_id)
        return message

    async def update_message(self, message_id: str, body: str) -> None:
        message = await self.get_message(message_id)
        message.body = body
