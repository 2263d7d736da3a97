from fastapi import APIRouter, Depends, HTTPException

from sportsfeed.api.v1.deps import get_service
from sportsfeed.data_providers.leagues import SUPPORTED_LEAGUES, get_league
from sportsfeed.services.aggregator import SportsDataService
from sportsfeed.tasks.sync_league import sync_league

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health")
async def health(service: SportsDataService = Depends(get_service)) -> dict:
    return await service.health()


@router.get("/breakers")
async def breakers(service: SportsDataService = Depends(get_service)) -> dict:
    return service.breakers()


@router.delete("/cache/{pattern}")
async def clear_cache(pattern: str, service: SportsDataService = Depends(get_service)) -> dict[str, str | int]:
    deleted = await service.invalidate(pattern)
    return {"pattern": pattern, "deleted": deleted}


@router.post("/sync/{league}")
async def trigger_sync(league: str, service: SportsDataService = Depends(get_service)) -> dict:
    if get_league(league) is None:
        raise HTTPException(status_code=400, detail=f"unsupported league, expected one of {', '.join(SUPPORTED_LEAGUES)}")
    return await sync_league(service, league)
