from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/news", tags=["news"])


@router.get("/{league}")
async def league_news(
    league: str,
    response: Response,
    limit: int = Query(default=25, ge=1, le=100),
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_news(league, limit, bypass_cache=bypass)
    return cached_payload(result, response)
