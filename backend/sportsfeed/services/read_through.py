from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from sportsfeed.cache import TieredCache

logger = logging.getLogger(__name__)


@dataclass
class CachedResult:
    data: Any
    cached: bool


def to_jsonable(value: Any) -> Any:
    """Serialize fetch results the same way whether they came from cache or upstream."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


async def get_or_fetch(
    cache: TieredCache,
    category: str,
    key: str,
    fetch_fn: Callable[[], Awaitable[Any]],
    *,
    ttl: int | None = None,
    bypass_cache: bool = False,
) -> CachedResult:
    if not bypass_cache:
        cached = await cache.get(key)
        if cached is not None:
            logger.debug("cache hit: key=%s", key)
            return CachedResult(data=cached, cached=True)
        logger.debug("cache miss: key=%s", key)
    else:
        logger.debug("cache bypass requested: key=%s", key)

    data = to_jsonable(await fetch_fn())
    await cache.set(key, data, ttl if ttl is not None else cache.ttl_for(category))
    return CachedResult(data=data, cached=False)


async def invalidate(cache: TieredCache, pattern: str) -> int:
    count = await cache.delete_by_pattern(pattern)
    logger.info("invalidated cache entries: pattern=%s count=%s", pattern, count)
    return count
