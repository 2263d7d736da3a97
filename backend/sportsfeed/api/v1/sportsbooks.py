from typing import Any

from fastapi import APIRouter, Depends, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/sportsbooks", tags=["odds"])


@router.get("")
async def sportsbooks(
    response: Response,
    league: str | None = None,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_sportsbooks(league, bypass_cache=bypass)
    return cached_payload(result, response)
