import asyncio

import structlog

from src.core.exceptions import AggregationInProgressError
from src.db.database import worker_session
from src.db.models.job import RunTrigger
from src.services.aggregation_service import LeaderboardAggregationService
from src.services.lock_service import AggregationLock, create_redis_client
from src.workers.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Run async code in sync context."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


@celery_app.task
def calculate_leaderboards() -> dict:
    """
    Recalculate every leaderboard partition from completed events.

    Scheduled daily by beat. Failures are logged and reported in the
    returned dict; nothing is raised to the scheduler.
    """
    return run_async(_calculate_leaderboards_async(RunTrigger.SCHEDULED))


async def _calculate_leaderboards_async(
    trigger: RunTrigger,
    triggered_by: str | None = None,
) -> dict:
    logger.info("Starting leaderboard calculation", trigger=trigger.value)

    redis_client = create_redis_client()
    try:
        async with worker_session() as db:
            service = LeaderboardAggregationService(db, AggregationLock(redis_client))
            result = await service.run(trigger, triggered_by)
    except AggregationInProgressError as e:
        logger.warning("Skipping leaderboard calculation", reason=str(e))
        return {"status": "skipped", "reason": e.user_message}
    except Exception as e:
        logger.exception("Error calculating leaderboards", trigger=trigger.value)
        return {"status": "failed", "error": str(e)}
    finally:
        await redis_client.aclose()

    return {**result.to_dict(), "status": "completed"}
