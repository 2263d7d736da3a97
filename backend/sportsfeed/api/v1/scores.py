from typing import Any

from fastapi import APIRouter, Depends, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/scores", tags=["scores"])


@router.get("/{league}")
async def league_scores(
    league: str,
    response: Response,
    dates: str | None = None,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_scores(league, dates, bypass_cache=bypass)
    return cached_payload(result, response)


@router.get("/{league}/stored")
async def stored_scores(
    league: str,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_stored_scores(league, bypass_cache=bypass)
    return cached_payload(result, response)
