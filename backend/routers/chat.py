"""
Parley Chat Router - conversations and chat turns

Thin HTTP layer over ChatOrchestrator. Tool identifiers are converted to the
closed Tool set here; everything downstream works on the enum.

Durable chats persist the user turn once the credential pre-flight passes, then
pass its id along so it is not read back into history a second time.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from errors import ValidationError
from services.store import AUTHOR_USER, DEFAULT_CONVERSATION_TITLE, InMemoryStore
from .chat_orchestration import ChatOrchestrator, ChatRequest, parse_tools

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class GuestTurn(BaseModel):
    role: str
    content: str


class ChatBody(BaseModel):
    message: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    tools: List[str] = Field(default_factory=list)
    model: Optional[str] = None
    is_guest: bool = False
    guest_history: Optional[List[GuestTurn]] = None


class ConversationBody(BaseModel):
    title: str = DEFAULT_CONVERSATION_TITLE


def _store(request: Request) -> InMemoryStore:
    return request.app.state.store


def _orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


@router.post("/conversations")
async def create_conversation(request: Request, body: Optional[ConversationBody] = None):
    """Start a new durable conversation"""
    conversation = await _store(request).create_conversation(
        title=body.title if body else DEFAULT_CONVERSATION_TITLE
    )
    return {"id": conversation.id, "title": conversation.title}


@router.get("/conversations/{conversation_id}")
async def get_conversation(request: Request, conversation_id: str):
    conversation = await _store(request).get_conversation(conversation_id)
    return {"id": conversation.id, "title": conversation.title}


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(request: Request, conversation_id: str):
    """Stored messages, oldest first (AI bodies reflect the latest flush)"""
    store = _store(request)
    await store.get_conversation(conversation_id)
    messages = await store.list_messages(conversation_id)
    return {"conversation_id": conversation_id, "messages": [m.to_dict() for m in messages]}


@router.post("/chat")
async def chat(request: Request, body: ChatBody):
    """Answer one chat turn.

    Returns the full response text once the stream has finished.
    """
    store = _store(request)
    orchestrator = _orchestrator(request)

    if not body.is_guest:
        if not body.conversation_id:
            raise ValidationError(
                "conversation_id is required for non-guest chats",
                parameter="conversation_id",
                expected="conversation id",
                received="none",
            )
        await store.get_conversation(body.conversation_id)

    chat_request = ChatRequest(
        message=body.message,
        conversation_id=None if body.is_guest else body.conversation_id,
        tools=parse_tools(body.tools),
        model=body.model,
        is_guest=body.is_guest,
        guest_history=[turn.model_dump() for turn in body.guest_history or []],
    )
    # Credential failures must leave the conversation untouched
    orchestrator.preflight(chat_request)

    if chat_request.durable:
        chat_request.user_message_id = await store.create_message(
            chat_request.conversation_id, AUTHOR_USER, body.message
        )

    response = await orchestrator.respond(chat_request)

    return {
        "content": response.text,
        "conversation_id": chat_request.conversation_id,
        "message_id": response.message_id,
    }
