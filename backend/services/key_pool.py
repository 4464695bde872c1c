"""
Completion provider credential pool.

Holds the configured API keys and hands out one per chat request, chosen
uniformly at random so load spreads across provider accounts.
"""

import logging
import random
from typing import Iterable, List, Optional

from config import completion_api_keys, COMPLETION_KEY_ENV_VARS
from errors import ConfigurationError

logger = logging.getLogger(__name__)


class KeyPool:
    """Uniform random selection over a fixed set of credentials.

    Selection keeps no state between calls. Pass a seeded ``random.Random``
    for deterministic selection in tests.
    """

    def __init__(self, keys: Iterable[str], rng: Optional[random.Random] = None):
        self._keys: List[str] = [k for k in keys if k]
        self._rng = rng or random.Random()

    @classmethod
    def from_env(cls, rng: Optional[random.Random] = None) -> "KeyPool":
        """Build a pool from the GROQ_API_KEY* environment variables."""
        pool = cls(completion_api_keys(), rng=rng)
        logger.info(f"Key pool loaded with {len(pool)} completion credential(s)")
        return pool

    def __len__(self) -> int:
        return len(self._keys)

    def select(self) -> str:
        """Pick one credential.

        Raises:
            ConfigurationError: if no credentials are configured
        """
        if not self._keys:
            raise ConfigurationError(
                "No completion API key configured",
                details=f"Set at least one of {', '.join(COMPLETION_KEY_ENV_VARS)}",
                setting=COMPLETION_KEY_ENV_VARS[0],
            )
        return self._rng.choice(self._keys)
