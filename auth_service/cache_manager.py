"""
Key/value token cache with per-entry TTL.

Backs refresh-token records, the access-token revocation list and consumed
authorization-code ids. Two backends:

- InMemoryTokenCache: single-instance only, data is lost on restart.
- RedisTokenCache: shared across workers.

pop() is the atomic fetch-and-delete used by refresh-token rotation.
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import redis
from loguru import logger


class TokenCache(ABC):
    """Interface shared by the cache backends. TTLs are in seconds."""

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        ...

    @abstractmethod
    def add(self, key: str, value: Dict[str, Any], ttl: int) -> bool:
        """Store only if the key is absent. Returns True when stored."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def pop(self, key: str) -> Optional[Dict[str, Any]]:
        """Atomically fetch and delete"""

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryTokenCache(TokenCache):
    """
    In-memory cache using a dict guarded by a lock.

    Expired entries are swept from the write path every `cleanup_every` writes,
    so keys that are never read again do not accumulate.
    """

    def __init__(self, cleanup_every: int = 100):
        self._entries = {}  # key -> (value, expiry)
        self.lock = threading.Lock()
        self.cleanup_every = cleanup_every
        self._writes = 0
        logger.info("[CACHE] In-memory token cache initialized")

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _is_expired(self, expiry: datetime) -> bool:
        return self._now() > expiry

    def _live(self, key: str) -> Optional[Dict[str, Any]]:
        # caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if self._is_expired(expiry):
            del self._entries[key]
            return None
        return value

    def _cleanup_expired(self) -> int:
        # caller holds the lock
        now = self._now()
        before = len(self._entries)
        self._entries = {k: v for k, v in self._entries.items() if v[1] > now}
        return before - len(self._entries)

    def _store(self, key: str, value: Dict[str, Any], ttl: int):
        # caller holds the lock
        self._entries[key] = (dict(value), self._now() + timedelta(seconds=ttl))
        self._writes += 1
        if self._writes >= self.cleanup_every:
            self._writes = 0
            removed = self._cleanup_expired()
            if removed:
                logger.debug(f"[CACHE] Swept {removed} expired entries")

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self.lock:
            self._store(key, value, ttl)

    def add(self, key: str, value: Dict[str, Any], ttl: int) -> bool:
        with self.lock:
            if self._live(key) is not None:
                return False
            self._store(key, value, ttl)
            return True

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self.lock:
            value = self._live(key)
            return dict(value) if value is not None else None

    def pop(self, key: str) -> Optional[Dict[str, Any]]:
        with self.lock:
            value = self._live(key)
            if value is None:
                return None
            del self._entries[key]
            return value

    def delete(self, key: str) -> bool:
        with self.lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self):
        """Drop expired entries now"""
        with self.lock:
            removed = self._cleanup_expired()
        if removed:
            logger.debug(f"[CACHE] Purged {removed} expired entries")


class RedisTokenCache(TokenCache):
    """Redis-backed cache. Values are JSON, TTLs are stored in milliseconds."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisTokenCache":
        client = redis.Redis.from_url(url, decode_responses=True)
        logger.info("[CACHE] Redis token cache initialized")
        return cls(client)

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        self.client.set(key, json.dumps(value), px=int(ttl * 1000))

    def add(self, key: str, value: Dict[str, Any], ttl: int) -> bool:
        return bool(self.client.set(key, json.dumps(value), px=int(ttl * 1000), nx=True))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def pop(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.client.getdel(key)
        return json.loads(raw) if raw else None

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))


def build_token_cache(redis_url: Optional[str]) -> TokenCache:
    if redis_url:
        return RedisTokenCache.from_url(redis_url)
    logger.warning("[CACHE] REDIS_URL not set - using in-memory token cache (single instance only)")
    return InMemoryTokenCache()
