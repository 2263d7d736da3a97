from typing import Any

from fastapi import Header, Request, Response

from sportsfeed.services.aggregator import SportsDataService
from sportsfeed.services.read_through import CachedResult


def get_service(request: Request) -> SportsDataService:
    return request.app.state.service


def bypass_cache(cache_control: str | None = Header(default=None)) -> bool:
    return bool(cache_control) and "no-cache" in cache_control.lower()


def cached_payload(result: CachedResult, response: Response) -> Any:
    response.headers["X-Cache"] = "HIT" if result.cached else "MISS"
    return result.data
