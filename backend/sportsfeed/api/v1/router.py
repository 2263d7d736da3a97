from fastapi import APIRouter

from sportsfeed.api.v1.news import router as news_router
from sportsfeed.api.v1.odds import router as odds_router
from sportsfeed.api.v1.players import router as players_router
from sportsfeed.api.v1.scores import router as scores_router
from sportsfeed.api.v1.sportsbooks import router as sportsbooks_router
from sportsfeed.api.v1.system import router as system_router
from sportsfeed.api.v1.teams import router as teams_router

api_router = APIRouter()
api_router.include_router(scores_router)
api_router.include_router(odds_router)
api_router.include_router(sportsbooks_router)
api_router.include_router(news_router)
api_router.include_router(teams_router)
api_router.include_router(players_router)
api_router.include_router(system_router)
