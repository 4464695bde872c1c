"""
Tests for background title generation.
"""

import asyncio

import pytest

from routers.chat_orchestration import TitleGenerator, clean_title
from routers.chat_orchestration.title import TITLE_INSTRUCTION
from services.key_pool import KeyPool
from services.store import DEFAULT_CONVERSATION_TITLE


class TestCleanTitle:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('"NYC Weather Check"', "NYC Weather Check"),
            ("  Pasta Night  \n", "Pasta Night"),
            ('"Half quoted', "Half quoted"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_clean(self, raw, expected):
        assert clean_title(raw) == expected


class TestTitleGenerator:
    def _generate(self, store, generator):
        async def run():
            conversation = await store.create_conversation()
            title = await generator.generate(conversation.id, "what's the weather in NYC?")
            return title, (await store.get_conversation(conversation.id)).title

        return asyncio.run(run())

    def test_stores_title(self, provider, completion_client, store, key_pool, test_config):
        provider.chat_replies[test_config.model_title] = '"NYC Weather"'
        generator = TitleGenerator(key_pool, completion_client, store, test_config.model_title)

        title, stored = self._generate(store, generator)
        assert title == stored == "NYC Weather"

        payload = provider.chat_payloads_for(test_config.model_title)[0]
        assert payload["messages"] == [
            {"role": "system", "content": TITLE_INSTRUCTION},
            {"role": "user", "content": "what's the weather in NYC?"},
        ]
        assert "response_format" not in payload

    def test_provider_failure_is_swallowed(self, provider, completion_client, store, key_pool, test_config):
        provider.chat_replies[test_config.model_title] = 503
        generator = TitleGenerator(key_pool, completion_client, store, test_config.model_title)
        title, stored = self._generate(store, generator)
        assert title is None
        assert stored == DEFAULT_CONVERSATION_TITLE

    def test_empty_title_not_stored(self, provider, completion_client, store, key_pool, test_config):
        provider.chat_replies[test_config.model_title] = '  ""  '
        generator = TitleGenerator(key_pool, completion_client, store, test_config.model_title)
        title, stored = self._generate(store, generator)
        assert title is None
        assert stored == DEFAULT_CONVERSATION_TITLE

    def test_missing_credentials_swallowed(self, provider, completion_client, store, test_config):
        generator = TitleGenerator(KeyPool([]), completion_client, store, test_config.model_title)
        title, stored = self._generate(store, generator)
        assert title is None
        assert provider.request_count == 0

    def test_unknown_conversation_swallowed(self, provider, completion_client, store, key_pool, test_config):
        provider.chat_replies[test_config.model_title] = "Orphan"
        generator = TitleGenerator(key_pool, completion_client, store, test_config.model_title)
        assert asyncio.run(generator.generate("conv_missing", "hi")) is None
