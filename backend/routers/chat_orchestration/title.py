"""
Parley Title Generator - names a new conversation from its first message

Runs as a background task. It has no failure mode visible to anyone: every
error is logged as a BackgroundTaskError and dropped.
"""

import logging
import re
from typing import Optional

from errors import BackgroundTaskError, log_error
from services.key_pool import KeyPool
from services.llm_client import CompletionClient
from services.store import ConversationStore

logger = logging.getLogger(__name__)

TITLE_INSTRUCTION = (
    "You are a specialized title generator. Based on the user's prompt, generate a VERY short, "
    "catchy title (max 4 words). Output ONLY the title, no quotes or punctuation."
)

_SURROUNDING_QUOTES_RE = re.compile(r'^"|"$')


def clean_title(raw: str) -> str:
    """Trim whitespace and one pair of surrounding double quotes."""
    return _SURROUNDING_QUOTES_RE.sub("", (raw or "").strip()).strip()


class TitleGenerator:
    def __init__(
        self,
        key_pool: KeyPool,
        client: CompletionClient,
        conversation_store: ConversationStore,
        model: str,
    ):
        self.key_pool = key_pool
        self.client = client
        self.conversation_store = conversation_store
        self.model = model

    async def generate(self, conversation_id: str, message: str) -> Optional[str]:
        """Generate and store a title. Returns it, or None when nothing was stored."""
        logger.info(f"Generating title for conversation {conversation_id}")
        try:
            api_key = self.key_pool.select()
            raw = await self.client.chat(
                api_key,
                self.model,
                [
                    {"role": "system", "content": TITLE_INSTRUCTION},
                    {"role": "user", "content": message},
                ],
            )
            title = clean_title(raw)
            if not title:
                logger.info(f"Title model returned nothing for {conversation_id}")
                return None
            await self.conversation_store.update_title(conversation_id, title)
        except Exception as e:
            log_error(
                logger,
                BackgroundTaskError("Title generation failed", details=str(e), task="title"),
                context="title",
                include_traceback=False,
            )
            return None

        logger.info(f"Generated title: {title!r}")
        return title
