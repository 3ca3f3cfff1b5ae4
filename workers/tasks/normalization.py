"""Rating normalization tasks."""

import asyncio
import logging

from celery import Task

from workers.celery_app import celery_app
from api.services.normalization import normalize_ratings
from core.cache import NORMALIZATION_LOCK, RedisCache
from core.config import settings
from core.errors import NormalizationInProgressError
from database.engine import AsyncSessionLocal, db_engine

logger = logging.getLogger(__name__)


async def _normalize() -> dict:
    cache = RedisCache()
    if settings.normalization_lock_enabled:
        await cache.init()
    try:
        async with cache.single_flight(NORMALIZATION_LOCK):
            async with AsyncSessionLocal() as session:
                result = await normalize_ratings(session)
    finally:
        await cache.close()
        # Pooled connections are bound to this task's event loop
        await db_engine.dispose()
    return result.to_dict()


@celery_app.task(name="workers.tasks.normalization.run_normalization", bind=True)
def run_normalization(self: Task) -> dict:
    """Recompute adjusted ratings and normalized averages.

    Returns:
        Dictionary with run status and summary counts
    """
    try:
        summary = asyncio.run(_normalize())
    except NormalizationInProgressError:
        logger.info("Skipping normalization; another run holds the lock",
                    extra={"task_id": self.request.id})
        return {"status": "skipped", "reason": "in_progress"}

    logger.info(
        f"Normalization task finished: {summary['applications_updated']} applications",
        extra={"task_id": self.request.id},
    )
    return {
        "status": "success",
        "reviewers_processed": summary["reviewers_processed"],
        "applications_updated": summary["applications_updated"],
        "global_avg": summary["global_avg"],
        "global_std_dev": summary["global_std_dev"],
    }
