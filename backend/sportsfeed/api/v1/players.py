from typing import Any

from fastapi import APIRouter, Depends, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/players", tags=["players"])


@router.get("/{league}/{player_id}")
async def player_detail(
    league: str,
    player_id: str,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_player(league, player_id, bypass_cache=bypass)
    return cached_payload(result, response)
