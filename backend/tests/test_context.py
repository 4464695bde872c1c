"""
Tests for context assembly: base history, tool prompt injection, ordering.
"""

import asyncio

import pytest

from errors import ValidationError
from routers.chat_orchestration import ContextBuilder, ContextTurn, Tool, parse_tools
from routers.chat_orchestration.tools import CANVAS_PROMPT, CODE_INTERPRETER_PROMPT
from services.store import AUTHOR_AI, AUTHOR_USER


async def seed_conversation(store, turns):
    conversation = await store.create_conversation()
    ids = []
    for i in range(turns):
        author = AUTHOR_USER if i % 2 == 0 else AUTHOR_AI
        ids.append(await store.create_message(conversation.id, author, f"turn {i}"))
    return conversation.id, ids


class TestParseTools:
    def test_known_identifiers(self):
        assert parse_tools(["search", "canvas", "code_interpreter"]) == frozenset(Tool)

    def test_unknown_and_case(self):
        assert parse_tools([" Search ", "image_gen"]) == frozenset({Tool.SEARCH})

    def test_none(self):
        assert parse_tools(None) == frozenset()


class TestLoadHistory:
    def test_guest_uses_transcript_without_store(self, store):
        """Guest sessions never read the store."""
        builder = ContextBuilder(store)
        history = [
            {"role": "user", "content": "a"},
            {"role": "model", "content": "b"},
            {"role": "assistant", "content": "c"},
        ]
        turns = asyncio.run(builder.load_history(is_guest=True, guest_history=history))
        assert turns == [
            ContextTurn("user", "a"),
            ContextTurn("assistant", "b"),
            ContextTurn("assistant", "c"),
        ]
        assert store.list_calls == []

    def test_guest_empty(self, store):
        assert asyncio.run(ContextBuilder(store).load_history(is_guest=True)) == []

    def test_durable_requires_conversation(self, store):
        with pytest.raises(ValidationError):
            asyncio.run(ContextBuilder(store).load_history())

    def test_durable_maps_authors(self, store):
        async def run():
            conversation_id, _ = await seed_conversation(store, 2)
            return await ContextBuilder(store).load_history(conversation_id=conversation_id)

        assert asyncio.run(run()) == [ContextTurn("user", "turn 0"), ContextTurn("assistant", "turn 1")]

    def test_window_keeps_newest(self, store):
        async def run():
            conversation_id, _ = await seed_conversation(store, 25)
            return await ContextBuilder(store, window=20).load_history(conversation_id=conversation_id)

        turns = asyncio.run(run())
        assert len(turns) == 20
        assert turns[0].content == "turn 5"
        assert turns[-1].content == "turn 24"

    def test_excludes_current_turn(self, store):
        async def run():
            conversation_id, ids = await seed_conversation(store, 3)
            return await ContextBuilder(store).load_history(
                conversation_id=conversation_id, exclude_message_id=ids[-1]
            )

        assert [t.content for t in asyncio.run(run())] == ["turn 0", "turn 1"]


class TestInjection:
    BASE = [ContextTurn("user", "earlier"), ContextTurn("assistant", "reply")]

    def test_no_tools_is_identity(self):
        assert ContextBuilder.inject_tool_prompts(self.BASE, frozenset()) == self.BASE

    def test_canvas_ahead_of_code(self):
        context = ContextBuilder.inject_tool_prompts(self.BASE, {Tool.CODE_INTERPRETER, Tool.CANVAS})
        assert context[0] == ContextTurn.system(CANVAS_PROMPT)
        assert context[1] == ContextTurn.system(CODE_INTERPRETER_PROMPT)
        assert context[2:] == self.BASE

    def test_search_tool_adds_no_prompt(self):
        assert ContextBuilder.inject_tool_prompts(self.BASE, {Tool.SEARCH}) == self.BASE

    def test_input_not_mutated(self):
        base = list(self.BASE)
        ContextBuilder.inject_tool_prompts(base, {Tool.CANVAS})
        assert base == self.BASE

    def test_full_order(self):
        """[search, canvas, code, ...history, user]"""
        context = ContextBuilder.inject_tool_prompts(self.BASE, set(Tool))
        context = ContextBuilder.prepend(context, ContextTurn.system("results"))
        messages = ContextBuilder.finalize(context, "now")
        assert [m["content"] for m in messages] == [
            "results",
            CANVAS_PROMPT,
            CODE_INTERPRETER_PROMPT,
            "earlier",
            "reply",
            "now",
        ]
        assert messages[-1] == {"role": "user", "content": "now"}
