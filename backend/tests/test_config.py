"""
Tests for RuntimeConfig defaults, environment overrides and runtime updates.
"""

from config import RuntimeConfig, completion_api_keys, search_api_key


class TestDefaults:
    def test_defaults(self, monkeypatch):
        for name in ("LLM_CHAT_MODEL", "LLM_PLANNER_MODEL", "LLM_TITLE_MODEL", "CHAT_HISTORY_WINDOW",
                     "STREAM_FLUSH_INTERVAL_MS", "COMPLETION_API_URL", "GROQ_API_URL"):
            monkeypatch.delenv(name, raising=False)
        config = RuntimeConfig()
        assert config.completion_api_url == "https://api.groq.com/openai/v1"
        assert config.model_chat == "groq/compound"
        assert config.model_planner == "groq/compound"
        assert config.model_title == "llama-3.1-8b-instant"
        assert config.history_window == 20
        assert config.flush_interval_ms == 100
        assert config.flush_interval_s == 0.1

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LLM_CHAT_MODEL", "llama-3.3-70b-versatile")
        monkeypatch.delenv("LLM_PLANNER_MODEL", raising=False)
        monkeypatch.setenv("COMPLETION_API_URL", "http://localhost:8080/v1/")
        config = RuntimeConfig()
        assert config.model_chat == "llama-3.3-70b-versatile"
        # Planner follows the chat model unless set on its own
        assert config.model_planner == "llama-3.3-70b-versatile"
        assert config.completion_api_url == "http://localhost:8080/v1"

    def test_credentials_not_exported(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-secret")
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-secret")
        exported = RuntimeConfig().to_dict()
        assert "gsk-secret" not in exported.values()
        assert "tvly-secret" not in exported.values()
        assert not any(k.startswith("_") for k in exported)


class TestCredentials:
    def test_completion_keys_in_order(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "a")
        monkeypatch.delenv("GROQ_API_KEY_2", raising=False)
        monkeypatch.setenv("GROQ_API_KEY_3", "c")
        assert completion_api_keys() == ["a", "c"]

    def test_search_key(self, monkeypatch):
        monkeypatch.setenv("TAVILY_API_KEY", "  tvly  ")
        assert search_api_key() == "tvly"
        monkeypatch.setenv("TAVILY_API_KEY", "")
        assert search_api_key() is None


class TestUpdate:
    def test_valid_update(self):
        config = RuntimeConfig()
        result = config.update(history_window=30, flush_interval_ms=250, model_chat="llama-3.1-8b-instant")
        assert sorted(result["updated"]) == ["flush_interval_ms", "history_window", "model_chat"]
        assert config.flush_interval_s == 0.25

    def test_rejects_out_of_range_and_unknown(self):
        config = RuntimeConfig()
        result = config.update(history_window=0, nonsense=1, _lock=None, flush_interval_s=1)
        assert result["updated"] == []
        assert sorted(result["ignored"]) == ["_lock", "flush_interval_s", "history_window", "nonsense"]
        assert config.history_window != 0

    def test_rejects_bad_model_and_url(self):
        config = RuntimeConfig()
        result = config.update(model_title="bad model; rm", search_api_url="ftp://nope")
        assert sorted(result["ignored"]) == ["model_title", "search_api_url"]

    def test_url_normalized(self):
        config = RuntimeConfig()
        config.update(completion_api_url=" https://api.example.com/v1/ ")
        assert config.completion_api_url == "https://api.example.com/v1"
