from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from sportsfeed.cache import generate_cache_key
from sportsfeed.errors import PersistenceError
from sportsfeed.models.news import NewsArticle
from sportsfeed.repositories.base import BaseRepository, SyncResult
from sportsfeed.schemas.entities import NewsArticle as NewsArticleEntity
from sportsfeed.schemas.entities import NewsFeed

logger = logging.getLogger(__name__)


def news_record(article: NewsArticleEntity) -> dict[str, Any]:
    return {
        "external_id": article.external_id,
        "sport": article.sport,
        "headline": article.headline,
        "description": article.description,
        "story_url": article.story_url,
        "image_url": article.image_url,
        "published_at": article.published_at,
    }


class NewsRepository(BaseRepository[NewsArticle]):
    """Articles are written once; a re-synced article is left as first stored."""

    model = NewsArticle

    def _on_conflict(self, insert_stmt, records):
        return insert_stmt.on_conflict_do_nothing(index_elements=list(self.conflict_columns))

    async def get_latest(self, sport: str, limit: int = 25) -> list[NewsArticle]:
        return await self.find_where({"sport": sport}, order_by="published_at", descending=True, limit=limit)

    async def get_since(self, sport: str, since: datetime) -> list[NewsArticle]:
        stmt = (
            select(NewsArticle)
            .where(NewsArticle.sport == sport, NewsArticle.published_at >= since)
            .order_by(NewsArticle.published_at.desc())
        )
        return await self._scalars(stmt)

    async def search(self, sport: str, query: str, limit: int = 25) -> list[NewsArticle]:
        needle = query.strip().lower()
        stmt = (
            select(NewsArticle)
            .where(
                NewsArticle.sport == sport,
                or_(
                    func.lower(NewsArticle.headline).contains(needle),
                    func.lower(NewsArticle.description).contains(needle),
                ),
            )
            .order_by(NewsArticle.published_at.desc())
            .limit(limit)
        )
        return await self._scalars(stmt)

    async def cleanup(self, days_to_keep: int = 30, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now(UTC)) - timedelta(days=days_to_keep)
        async with self.session_factory() as session:
            try:
                result = await session.execute(delete(NewsArticle).where(NewsArticle.published_at < cutoff))
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceError(f"news cleanup failed: {exc}") from exc
        deleted = result.rowcount or 0
        logger.info("news cleanup complete: cutoff=%s deleted=%s", cutoff.isoformat(), deleted)
        return deleted

    async def sync_from_espn(self, feed: NewsFeed) -> SyncResult:
        result = await self.bulk_upsert([news_record(article) for article in feed.articles])
        if result.successful:
            await self._clear_cache(generate_cache_key("news", feed.sport) + ":*")
        return result
