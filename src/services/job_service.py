from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.job import AggregationRun, RunStatus, RunTrigger

logger = structlog.get_logger()


class JobService:
    """Service for recording and listing aggregation runs."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_runs(
        self,
        status: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[AggregationRun], int]:
        """List aggregation runs, newest first, with optional status filter."""
        offset = (page - 1) * page_size

        query = select(AggregationRun)
        count_query = select(func.count(AggregationRun.id))

        if status:
            try:
                status_enum = RunStatus(status.upper())
            except ValueError:
                status_enum = None
            if status_enum is not None:
                query = query.where(AggregationRun.status == status_enum)
                count_query = count_query.where(AggregationRun.status == status_enum)

        count_result = await self.db.execute(count_query)
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(AggregationRun.id.desc()).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_run(self, run_id: int) -> AggregationRun | None:
        return await self.db.get(AggregationRun, run_id)

    async def start_run(
        self,
        trigger: RunTrigger,
        triggered_by: str | None = None,
    ) -> AggregationRun:
        run = AggregationRun(
            trigger=trigger,
            triggered_by=triggered_by,
            status=RunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        self.db.add(run)
        await self.db.commit()

        logger.info("Aggregation run started", run_id=run.id, trigger=trigger.value)
        return run

    async def finish_run(
        self,
        run: AggregationRun,
        events_processed: int,
        users_ranked: int,
        partitions_published: int,
    ) -> None:
        run.status = RunStatus.COMPLETED
        run.completed_at = datetime.now(timezone.utc)
        run.events_processed = events_processed
        run.users_ranked = users_ranked
        run.partitions_published = partitions_published
        await self.db.commit()

        logger.info(
            "Aggregation run status updated",
            run_id=run.id,
            status=run.status.value,
        )

    async def fail_run(
        self,
        run: AggregationRun,
        error_message: str,
        partitions_published: int = 0,
    ) -> None:
        run.status = RunStatus.FAILED
        run.completed_at = datetime.now(timezone.utc)
        run.partitions_published = partitions_published
        run.error_message = error_message
        await self.db.commit()

        logger.info(
            "Aggregation run status updated",
            run_id=run.id,
            status=run.status.value,
        )
