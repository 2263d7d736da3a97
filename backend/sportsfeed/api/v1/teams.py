from typing import Any

from fastapi import APIRouter, Depends, Response

from sportsfeed.api.v1.deps import bypass_cache, cached_payload, get_service
from sportsfeed.services.aggregator import SportsDataService

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("/{league}")
async def league_teams(
    league: str,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_teams(league, bypass_cache=bypass)
    return cached_payload(result, response)


@router.get("/{league}/stored")
async def stored_teams(league: str, service: SportsDataService = Depends(get_service)) -> Any:
    return {"league": league.lower(), "teams": await service.get_stored_teams(league)}


@router.get("/{league}/{team_id}")
async def team_detail(
    league: str,
    team_id: str,
    response: Response,
    bypass: bool = Depends(bypass_cache),
    service: SportsDataService = Depends(get_service),
) -> Any:
    result = await service.get_team(league, team_id, bypass_cache=bypass)
    return cached_payload(result, response)
