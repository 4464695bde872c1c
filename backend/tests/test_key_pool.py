"""
Tests for the completion credential pool.
"""

import random
from collections import Counter

import pytest

from errors import ConfigurationError, ErrorCode
from services.key_pool import KeyPool


class TestKeyPool:
    def test_empty_pool_raises(self):
        pool = KeyPool([])
        with pytest.raises(ConfigurationError) as exc:
            pool.select()
        assert exc.value.code == ErrorCode.CONFIG_MISSING_CREDENTIAL
        assert exc.value.context["setting"] == "GROQ_API_KEY"

    def test_blank_keys_dropped(self):
        assert len(KeyPool(["a", "", "b"])) == 2

    def test_single_key(self):
        pool = KeyPool(["only"])
        assert {pool.select() for _ in range(10)} == {"only"}

    def test_seeded_selection_is_deterministic(self):
        keys = ["k1", "k2", "k3"]
        a = KeyPool(keys, rng=random.Random(42))
        b = KeyPool(keys, rng=random.Random(42))
        picks = [a.select() for _ in range(20)]
        assert picks == [b.select() for _ in range(20)]
        assert set(picks) <= set(keys)

    def test_selection_roughly_uniform(self):
        """Each key gets picked; no key dominates."""
        pool = KeyPool(["k1", "k2", "k3"], rng=random.Random(1))
        counts = Counter(pool.select() for _ in range(3000))
        assert set(counts) == {"k1", "k2", "k3"}
        for count in counts.values():
            assert 800 < count < 1200


class TestKeyPoolFromEnv:
    def test_reads_all_slots(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "one")
        monkeypatch.setenv("GROQ_API_KEY_2", "two")
        monkeypatch.setenv("GROQ_API_KEY_3", "three")
        assert len(KeyPool.from_env()) == 3

    def test_skips_unset_and_blank(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "one")
        monkeypatch.setenv("GROQ_API_KEY_2", "   ")
        monkeypatch.delenv("GROQ_API_KEY_3", raising=False)
        pool = KeyPool.from_env(rng=random.Random(0))
        assert len(pool) == 1
        assert pool.select() == "one"

    def test_none_configured(self, monkeypatch):
        for name in ("GROQ_API_KEY", "GROQ_API_KEY_2", "GROQ_API_KEY_3"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ConfigurationError):
            KeyPool.from_env().select()
