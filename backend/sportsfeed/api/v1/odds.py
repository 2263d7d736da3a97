from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/odds", tags=["odds"])


@router.get("/best/{league}")
async def best_odds(
    league: str,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_best_odds(league, bypass_cache=bypass)
    return cached_payload(result, response)


@router.get("/game/{game_id}")
async def game_odds(
    game_id: int,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_game_odds(game_id, bypass_cache=bypass)
    if result is None:
        raise HTTPException(status_code=404, detail="game not found")
    return cached_payload(result, response)


@router.get("/{league}")
async def league_odds(
    league: str,
    response: Response,
    regions: str | None = None,
    markets: str | None = None,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_odds(league, regions=regions, markets=markets, bypass_cache=bypass)
    return cached_payload(result, response)
