"""
Runtime Configuration for Parley.

Provides a singleton RuntimeConfig class that allows dynamic adjustment of
provider endpoints, model names and streaming parameters at runtime, without
requiring service restart.

Credentials are NOT part of RuntimeConfig. They stay environment-only and are
read through completion_api_keys() / search_api_key() at the point of use.

Usage:
    from config import runtime_config
    window = runtime_config.history_window
    runtime_config.update(flush_interval_ms=250, model_chat="llama-3.3-70b-versatile")
"""

import os
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
from threading import Lock

logger = logging.getLogger(__name__)

# Completion provider credentials, in selection-pool order
COMPLETION_KEY_ENV_VARS = ("GROQ_API_KEY", "GROQ_API_KEY_2", "GROQ_API_KEY_3")
SEARCH_KEY_ENV_VAR = "TAVILY_API_KEY"

_MODEL_NAME_RE = re.compile(r"^[a-zA-Z0-9._:/-]+$")


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


def completion_api_keys() -> List[str]:
    """Return the configured completion-provider credentials (blank values skipped)."""
    keys = []
    for name in COMPLETION_KEY_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            keys.append(value)
    return keys


def search_api_key() -> Optional[str]:
    """Return the search-provider credential, or None when unset."""
    value = os.environ.get(SEARCH_KEY_ENV_VAR, "").strip()
    return value or None


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Completion provider (OpenAI-compatible)
    completion_api_url: str = field(
        default_factory=lambda: _first_env(
            "COMPLETION_API_URL",
            "GROQ_API_URL",
            default="https://api.groq.com/openai/v1",
        ).rstrip("/")
    )
    llm_timeout_s: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT_S", "120")))

    # Model names (can be hot-swapped)
    model_chat: str = field(default_factory=lambda: _first_env("LLM_CHAT_MODEL", default="groq/compound"))
    model_planner: str = field(
        default_factory=lambda: _first_env("LLM_PLANNER_MODEL", "LLM_CHAT_MODEL", default="groq/compound")
    )
    model_title: str = field(default_factory=lambda: _first_env("LLM_TITLE_MODEL", default="llama-3.1-8b-instant"))

    # Web search provider (Tavily)
    search_api_url: str = field(
        default_factory=lambda: _first_env("SEARCH_API_URL", default="https://api.tavily.com/search")
    )
    search_max_results: int = field(default_factory=lambda: int(os.environ.get("SEARCH_MAX_RESULTS", "5")))
    search_timeout_s: float = field(default_factory=lambda: float(os.environ.get("SEARCH_TIMEOUT_S", "30")))

    # Prompt context
    history_window: int = field(default_factory=lambda: int(os.environ.get("CHAT_HISTORY_WINDOW", "20")))

    # Partial persistence while streaming
    flush_interval_ms: int = field(default_factory=lambda: int(os.environ.get("STREAM_FLUSH_INTERVAL_MS", "100")))

    # Logging
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper())

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(
        default_factory=lambda: {
            "llm_timeout_s": (1.0, 600.0),
            "search_max_results": (1, 20),
            "search_timeout_s": (1.0, 120.0),
            "history_window": (1, 200),
            "flush_interval_ms": (0, 10000),
        },
        repr=False,
        compare=False,
    )

    @property
    def flush_interval_s(self) -> float:
        """Flush interval in seconds, as used by the stream consumer's clock."""
        return self.flush_interval_ms / 1000.0

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., history_window=30)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown or rejected keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_") or not hasattr(self, key) or key == "flush_interval_s":
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")
                    continue

                if key.endswith("_url") and isinstance(value, str):
                    cleaned = value.strip()
                    if not cleaned.startswith(("http://", "https://")):
                        ignored.append(key)
                        logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                        continue
                    value = cleaned.rstrip("/")

                # Validate model names (alphanumeric, slashes, colons, dots, dashes only)
                if key.startswith("model_"):
                    if not isinstance(value, str) or not _MODEL_NAME_RE.match(value) or len(value) > 100:
                        ignored.append(key)
                        logger.warning(f"Config rejected invalid model name: {key}={value!r}")
                        continue

                # Validate numeric ranges
                if key in self._VALIDATION_RANGES:
                    lo, hi = self._VALIDATION_RANGES[key]
                    if not isinstance(value, (int, float)) or not (lo <= value <= hi):
                        ignored.append(key)
                        logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                        continue

                old_value = getattr(self, key)
                setattr(self, key, value)
                updated.append(key)
                logger.info(f"Config updated: {key} = {value} (was {old_value})")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored}

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if not field_info.name.startswith("_"):
                result[field_info.name] = getattr(self, field_info.name)
        return result


# Singleton instance
runtime_config = RuntimeConfig()