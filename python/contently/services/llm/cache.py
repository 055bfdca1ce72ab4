"""In-process TTL cache for generated responses.

Entries expire lazily: an expired entry is removed when it is read. The
cache is owned by the application (app.state) and never shared through a
module global.
"""

import time
from collections.abc import Callable, Sequence
from typing import Any

from contently.services.llm.types import Turn
from contently.services.redact import hash_text

DEFAULT_GENERATION_TTL_S = 600


class ResponseCache:
    """Key/value store with per-entry time-to-live."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        """Store value under key for ttl_s seconds, replacing any entry."""
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive")
        self._entries[key] = (value, self._clock() + ttl_s)

    def __len__(self) -> int:
        return len(self._entries)


def generation_cache_key(model: str, platform: str, turns: Sequence[Turn]) -> str:
    """Cache key for a generation.

    Covers the model, the platform and every turn (role and content), so two
    conversations only share an entry when their full history is identical.
    """
    transcript = "|".join(f"{turn.role}:{turn.content}" for turn in turns)
    return f"groq:{model}:{platform}:{hash_text(transcript)}"
