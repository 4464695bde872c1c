"""
Parley Context Builder - prompt context assembly

The context sent upstream is always:

    [injected system messages...] ++ [history, newest N] ++ [current user turn]

Injection prepends. Code-interpreter goes in first, canvas second (now ahead
of it), search results last (ahead of everything), so the final order is
[search?, canvas?, code?, ...history, user].
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from errors import ValidationError
from services.store import HistoryStore, AUTHOR_USER
from .tools import Tool, CODE_INTERPRETER_PROMPT, CANVAS_PROMPT

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"


@dataclass(frozen=True)
class ContextTurn:
    """One message of the upstream prompt."""

    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ContextTurn":
        return cls(ROLE_SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "ContextTurn":
        return cls(ROLE_USER, content)

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def normalize_role(role: str) -> str:
    """Anything that isn't the user is the assistant."""
    return ROLE_USER if role == ROLE_USER else ROLE_ASSISTANT


class ContextBuilder:
    """Loads base history and applies tool prompt injection."""

    def __init__(self, history_store: Optional[HistoryStore], window: int = 20):
        self.history_store = history_store
        self.window = window

    async def load_history(
        self,
        conversation_id: Optional[str] = None,
        is_guest: bool = False,
        guest_history: Optional[Iterable[Mapping[str, str]]] = None,
        exclude_message_id: Optional[str] = None,
    ) -> List[ContextTurn]:
        """Base turn sequence, before any tool injection.

        Guest sessions use the supplied transcript verbatim and never read the
        store. Durable sessions read the conversation and keep the newest
        ``window`` turns.

        Args:
            conversation_id: Durable conversation to read (required unless guest)
            is_guest: Non-durable session flag
            guest_history: Caller-supplied transcript of {role, content}
            exclude_message_id: Stored id of the turn being answered, if the
                caller already persisted it; it is appended separately
        """
        if is_guest:
            return [
                ContextTurn(normalize_role(turn.get("role", "")), turn.get("content", ""))
                for turn in (guest_history or [])
            ]

        if not conversation_id:
            raise ValidationError("conversation_id is required for non-guest chats", parameter="conversation_id")
        if self.history_store is None:
            raise ValidationError("No history store configured for durable chats")

        history = await self.history_store.list_messages(conversation_id)
        if exclude_message_id:
            history = [m for m in history if m.id != exclude_message_id]
        logger.debug(f"History length for {conversation_id}: {len(history)}")

        recent = history[-self.window:] if self.window > 0 else []
        return [
            ContextTurn(ROLE_USER if m.author == AUTHOR_USER else ROLE_ASSISTANT, m.body)
            for m in recent
        ]

    @staticmethod
    def inject_tool_prompts(base: List[ContextTurn], tools: Iterable[Tool]) -> List[ContextTurn]:
        """Prepend the code-interpreter then canvas system prompts."""
        tools = set(tools)
        context = list(base)
        if Tool.CODE_INTERPRETER in tools:
            context.insert(0, ContextTurn.system(CODE_INTERPRETER_PROMPT))
        if Tool.CANVAS in tools:
            context.insert(0, ContextTurn.system(CANVAS_PROMPT))
        return context

    @staticmethod
    def prepend(context: List[ContextTurn], turn: ContextTurn) -> List[ContextTurn]:
        return [turn, *context]

    @staticmethod
    def finalize(context: List[ContextTurn], message: str) -> List[Dict[str, str]]:
        """Append the current user turn and render wire messages."""
        return [turn.to_message() for turn in context] + [ContextTurn.user(message).to_message()]
