from sportsfeed.models.game import Game
from sportsfeed.models.news import NewsArticle
from sportsfeed.models.odds import Odds
from sportsfeed.models.team import Team

__all__ = ["Team", "Game", "Odds", "NewsArticle"]
