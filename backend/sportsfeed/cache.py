"""Tiered key-value cache.

Keys are namespaced ``category:part:part``. Each data category has its own
time-to-live. The cache is advisory and fails open: when the backing store is
unreachable, reads miss and writes are dropped, never raising to callers.

Backends:
- RedisCache: shared cache for production (redis-py asyncio)
- InMemoryCache: process-local cache for single-process runs and tests
- NullCache: no-op stub
"""

from __future__ import annotations

import fnmatch
import json
import logging
import re
import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from sportsfeed.config import Settings
from sportsfeed.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

CACHE_TTL: dict[str, int] = {
    "scores": 30,
    "odds": 300,
    "standings": 21600,
    "teams": 86400,
    "players": 604800,
    "news": 3600,
}
DEFAULT_TTL = 300

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_key_part(part: Any) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", str(part))


def generate_cache_key(namespace: str, *parts: Any) -> str:
    if not parts:
        return namespace
    return ":".join([namespace, *(sanitize_key_part(p) for p in parts)])


class CacheBackend:
    name = "base"

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> int:
        raise NotImplementedError

    async def delete_pattern(self, pattern: str) -> int:
        raise NotImplementedError

    async def ping(self) -> None:
        return None

    async def key_count(self) -> int | None:
        return None


class NullCache(CacheBackend):
    name = "none"

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        return None

    async def delete(self, key: str) -> int:
        return 0

    async def delete_pattern(self, pattern: str) -> int:
        return 0


class InMemoryCache(CacheBackend):
    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> int:
        return 1 if self._entries.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        matched = [k for k in list(self._entries) if self._live(k) is not None and fnmatch.fnmatchcase(k, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    async def key_count(self) -> int | None:
        return sum(1 for k in list(self._entries) if self._live(k) is not None)


class RedisCache(CacheBackend):
    name = "redis"

    def __init__(self, url: str, *, socket_timeout: float = 2.0, scan_count: int = 500) -> None:
        self.url = url
        self.socket_timeout = socket_timeout
        self.scan_count = scan_count
        self._client: redis.Redis | None = None

    def _require_client(self) -> redis.Redis:
        # the pool reconnects on the next command, so one client lives for the process
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
                health_check_interval=30,
            )
        return self._client

    async def connect(self) -> None:
        try:
            await self._require_client().ping()
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"redis unreachable at {self.url}: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> str | None:
        try:
            return await self._require_client().get(key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        try:
            await self._require_client().set(key, value, ex=ttl_seconds or None)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc

    async def delete(self, key: str) -> int:
        try:
            return int(await self._require_client().delete(key))
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc

    async def delete_pattern(self, pattern: str) -> int:
        client = self._require_client()
        deleted = 0
        batch: list[str] = []
        try:
            async for key in client.scan_iter(match=pattern, count=self.scan_count):
                batch.append(key)
                if len(batch) >= self.scan_count:
                    deleted += int(await client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(await client.delete(*batch))
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc
        return deleted

    async def ping(self) -> None:
        try:
            await self._require_client().ping()
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc

    async def key_count(self) -> int | None:
        try:
            return int(await self._require_client().dbsize())
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc


class TieredCache:
    """Fail-open facade over a cache backend with the per-category TTL table."""

    def __init__(self, backend: CacheBackend, ttl_overrides: dict[str, int] | None = None) -> None:
        self.backend = backend
        self.ttls = {**CACHE_TTL, **(ttl_overrides or {})}
        self.available = True

    def ttl_for(self, category: str) -> int:
        return self.ttls.get(category, DEFAULT_TTL)

    def _degrade(self, operation: str, key: str, exc: Exception) -> None:
        if self.available:
            logger.warning("cache degraded to pass-through: backend=%s operation=%s key=%s error=%s", self.backend.name, operation, key, exc)
        self.available = False

    def _recover(self) -> None:
        if not self.available:
            logger.info("cache backend recovered: backend=%s", self.backend.name)
        self.available = True

    async def connect(self) -> bool:
        try:
            await self.backend.connect()
        except CacheUnavailableError as exc:
            self._degrade("connect", "-", exc)
            return False
        self._recover()
        return True

    async def close(self) -> None:
        try:
            await self.backend.close()
        except CacheUnavailableError:
            logger.exception("cache close failed: backend=%s", self.backend.name)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.backend.get(key)
        except CacheUnavailableError as exc:
            self._degrade("get", key, exc)
            return None
        self._recover()
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("dropping undecodable cache entry: key=%s", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError):
            logger.exception("cache value is not serializable: key=%s", key)
            return False
        try:
            await self.backend.set(key, serialized, ttl_seconds)
        except CacheUnavailableError as exc:
            self._degrade("set", key, exc)
            return False
        self._recover()
        return True

    async def delete(self, key: str) -> int:
        try:
            count = await self.backend.delete(key)
        except CacheUnavailableError as exc:
            self._degrade("delete", key, exc)
            return 0
        self._recover()
        return count

    async def delete_by_pattern(self, pattern: str) -> int:
        try:
            count = await self.backend.delete_pattern(pattern)
        except CacheUnavailableError as exc:
            self._degrade("delete_pattern", pattern, exc)
            return 0
        self._recover()
        return count

    async def health_check(self) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            await self.backend.ping()
            keys = await self.backend.key_count()
        except CacheUnavailableError as exc:
            return {"status": "unhealthy", "backend": self.backend.name, "connected": False, "message": str(exc)}
        return {
            "status": "healthy",
            "backend": self.backend.name,
            "connected": True,
            "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            "keys": keys,
        }


def build_cache(config: Settings) -> TieredCache:
    backend_name = config.cache_backend.strip().lower()
    if backend_name == "redis":
        backend: CacheBackend = RedisCache(config.redis_url, socket_timeout=config.redis_socket_timeout_seconds)
    elif backend_name == "memory":
        backend = InMemoryCache()
    else:
        backend = NullCache()
    return TieredCache(backend, config.cache_ttl_overrides())
