import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import text

from sportsfeed.config import get_database_identity, settings
from sportsfeed.database import AsyncSessionLocal
from sportsfeed.services.aggregator import build_service
from sportsfeed.tasks.sync_league import cleanup_news, sync_league

logger = logging.getLogger(__name__)

service = build_service()


async def wait_for_required_tables(max_attempts: int = 30, sleep_seconds: int = 2) -> None:
    for attempt in range(1, max_attempts + 1):
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1 FROM teams LIMIT 1"))
                await session.execute(text("SELECT 1 FROM games LIMIT 1"))
            if attempt > 1:
                logger.info("database schema ready after retry: attempts=%s", attempt)
            return
        except Exception:
            if attempt == max_attempts:
                logger.exception("database schema not ready after retries")
                raise
            logger.warning(
                "database schema not ready; waiting before retry: attempt=%s/%s sleep_seconds=%s",
                attempt,
                max_attempts,
                sleep_seconds,
            )
            await asyncio.sleep(sleep_seconds)


async def run_sync_league(league: str) -> None:
    summary = await sync_league(service, league)
    logger.info(
        "sync job complete: league=%s scores=%s odds=%s news=%s breakers=%s",
        league,
        summary["scores"],
        summary["odds"],
        summary["news"],
        service.breakers(),
    )


async def run_news_cleanup() -> None:
    deleted = await cleanup_news(service, settings.news_retention_days)
    logger.info("news cleanup job complete: deleted=%s retention_days=%s", deleted, settings.news_retention_days)


async def main() -> None:
    db_host, db_name = get_database_identity()
    leagues = settings.sync_league_list()
    logger.info(
        "worker startup: database_host=%s database_name=%s leagues=%s interval_seconds=%s odds_api_key_set=%s",
        db_host,
        db_name,
        ",".join(leagues),
        settings.sync_interval_seconds,
        bool(settings.odds_api_key),
    )

    await wait_for_required_tables()
    await service.startup()

    sched = AsyncIOScheduler(timezone="UTC")
    for league in leagues:
        sched.add_job(
            run_sync_league,
            "interval",
            seconds=settings.sync_interval_seconds,
            args=[league],
            id=f"sync-{league}",
            max_instances=1,
            coalesce=True,
        )
    sched.add_job(run_news_cleanup, "cron", hour=4, minute=0)
    sched.start()

    for league in leagues:
        await run_sync_league(league)

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        sched.shutdown(wait=False)
        await service.shutdown()


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    asyncio.run(main())
