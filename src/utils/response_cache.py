"""In-memory TTL cache for LLM completions."""

import hashlib
import logging
import time
from typing import Callable, Optional

from src.models.llm_request import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
KEY_PREFIX = "openai:"


class ResponseCache:
    """Key/value store whose entries expire ``ttl_seconds`` after creation.

    Expired entries are evicted lazily when read. When ``max_size`` is
    reached the oldest entry is dropped to make room.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self._cache: dict[str, CacheEntry] = {}
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._clock = clock

    @staticmethod
    def make_key(system_prompt: str, user_prompt: str) -> str:
        """Deterministic key for a (system prompt, user prompt) pair."""
        raw = f"{system_prompt}\x00{user_prompt}"
        return KEY_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at > self._ttl_seconds:
            del self._cache[key]
            logger.debug("Cache entry expired: %s", key)
            return None
        return entry.value

    def set(self, key: str, value: str) -> None:
        if key not in self._cache and len(self._cache) >= self._max_size:
            oldest_key = min(self._cache, key=lambda k: self._cache[k].created_at)
            del self._cache[oldest_key]
        self._cache[key] = CacheEntry(key=key, value=value, created_at=self._clock())

    def clear(self, prefix: Optional[str] = None) -> None:
        """Remove every entry, or only those whose key starts with *prefix*."""
        if prefix is None:
            self._cache.clear()
            return
        for key in [k for k in self._cache if k.startswith(prefix)]:
            del self._cache[key]

    def __len__(self) -> int:
        return len(self._cache)
