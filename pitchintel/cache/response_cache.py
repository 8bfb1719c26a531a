"""
Response Cache - In-process Completion Caching Layer

This module caches LLM completion results keyed by a normalized request
fingerprint, so repeated analysis and chat requests cost nothing.
"""

import json
import hashlib
import logging
import time
from typing import Optional, Dict, Any, List, Callable

from pitchintel.models.completion import CompletionResult
from pitchintel.models.usage import CacheEntry
from pitchintel.storage.memory_store import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30 * 60  # 30 minutes
DEFAULT_MAX_SIZE = 1000
FINGERPRINT_PREFIX = "pitchintel:cache"


class ResponseCache:
    """
    Bounded TTL cache for completion results

    Cache Strategy:
    - Key: hash(endpoint + trimmed messages + rounded temperature + system prompt)
    - TTL: Configurable (default 30 minutes), lazy expiry on read plus sweep
    - Overflow: evict the entry with the oldest creation time
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        store: Optional[KeyValueStore[CacheEntry]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = ttl or DEFAULT_TTL
        self.max_size = max_size
        self.store: KeyValueStore[CacheEntry] = store if store is not None else InMemoryStore()
        self.clock = clock
        self.stats = {
            "hits": 0,
            "requests": 0,
            "sets": 0,
            "evictions": 0,
        }

    @staticmethod
    def create_fingerprint(endpoint: str, data: Dict[str, Any]) -> str:
        """
        Generate cache fingerprint from request data

        Normalization:
        - Message role plus whitespace-trimmed content
        - Temperature rounded to 2 decimal places
        - System prompt trimmed, when supplied
        Everything else in `data` is ignored.
        """
        messages = data.get("messages")
        if isinstance(messages, list):
            messages = [_normalize_message(msg) for msg in messages]

        temperature = data.get("temperature")
        if isinstance(temperature, (int, float)) and not isinstance(temperature, bool):
            temperature = round(float(temperature), 2)

        system_prompt = data.get("system_prompt", data.get("systemPrompt"))
        if isinstance(system_prompt, str):
            system_prompt = system_prompt.strip() or None

        key_data = {
            "endpoint": endpoint,
            "messages": messages,
            "temperature": temperature,
            "system_prompt": system_prompt,
        }
        key_string = json.dumps(key_data, sort_keys=True, default=str)

        # Hash for consistent key length
        key_hash = hashlib.sha256(key_string.encode()).hexdigest()
        return f"{FINGERPRINT_PREFIX}:{endpoint}:{key_hash}"

    async def get(self, key: str) -> Optional[CompletionResult]:
        """
        Get cached result

        Returns:
            Cached result or None if absent or expired
        """
        self.stats["requests"] += 1
        entry = self.store.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock()):
            self.store.delete(key)
            return None

        entry.hits += 1
        self.stats["hits"] += 1
        return entry.payload

    async def set(
        self,
        key: str,
        value: CompletionResult,
        ttl: Optional[float] = None,
    ):
        """
        Cache a result

        Args:
            key: Cache fingerprint
            value: Result to cache
            ttl: Time to live in seconds (uses default if None)
        """
        if key not in self.store and len(self.store) >= self.max_size:
            self._evict_oldest()

        now = self.clock()
        self.store.set(
            key,
            CacheEntry(
                fingerprint=key,
                payload=value,
                created_at=now,
                expires_at=now + (ttl or self.default_ttl),
            ),
        )
        self.stats["sets"] += 1

    def has(self, key: str) -> bool:
        """Check presence without touching hit/miss counters"""
        entry = self.store.get(key)
        if entry is None:
            return False
        if entry.is_expired(self.clock()):
            self.store.delete(key)
            return False
        return True

    def delete(self, key: str) -> bool:
        """Delete a cached entry"""
        return self.store.delete(key)

    def clear(self):
        """Drop every entry and reset the counters"""
        self.store.clear()
        self.stats = {key: 0 for key in self.stats}

    def size(self) -> int:
        return len(self.store)

    def sweep_expired(self) -> int:
        """Remove every expired entry; returns how many were removed"""
        now = self.clock()
        expired = [key for key, entry in self.store.items() if entry.is_expired(now)]
        for key in expired:
            self.store.delete(key)
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        total_requests = self.stats["requests"]
        hit_rate = (
            self.stats["hits"] / total_requests
            if total_requests > 0
            else 0.0
        )

        return {
            "size": self.size(),
            "maxSize": self.max_size,
            "hitRate": hit_rate,
            "totalHits": self.stats["hits"],
            "totalRequests": total_requests,
            "evictions": self.stats["evictions"],
        }

    def get_most_hit_entries(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most frequently served entries, highest hit count first"""
        entries = sorted(self.store.values(), key=lambda e: e.hits, reverse=True)
        return [
            {"key": entry.fingerprint, "hits": entry.hits, "data": entry.payload.to_response()}
            for entry in entries[:limit]
        ]

    def _evict_oldest(self):
        oldest_key = None
        oldest_time = None
        for key, entry in self.store.items():
            if oldest_time is None or entry.created_at < oldest_time:
                oldest_time = entry.created_at
                oldest_key = key

        if oldest_key is not None:
            self.store.delete(oldest_key)
            self.stats["evictions"] += 1
            logger.debug("Evicted oldest cache entry %s", oldest_key)


def _normalize_message(msg: Any) -> Any:
    if not isinstance(msg, dict):
        role = getattr(msg, "role", None)
        content = getattr(msg, "content", None)
    else:
        role = msg.get("role")
        content = msg.get("content", msg.get("text"))
    if isinstance(content, str):
        content = content.strip()
    return {"role": role, "content": content}
