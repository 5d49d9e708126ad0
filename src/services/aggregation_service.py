import asyncio
import time
from dataclasses import dataclass
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import AggregationInProgressError, AggregationTimeoutError
from src.db.models.job import RunStatus, RunTrigger
from src.services.job_service import JobService
from src.services.leaderboard_service import LeaderboardService
from src.services.participation_service import ParticipationExtractor
from src.services.ranking_service import EmptyPartitionPolicy, RankingConfig, build_rankings
from src.services.scoring_service import accumulate, observed_sport_types

logger = structlog.get_logger()


class RunLock(Protocol):
    name: str

    async def acquire(self) -> bool: ...

    async def release(self) -> None: ...


@dataclass
class AggregationResult:
    run_id: int
    status: RunStatus
    events_processed: int = 0
    users_ranked: int = 0
    partitions_published: int = 0
    stale_partitions_cleared: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "events_processed": self.events_processed,
            "users_ranked": self.users_ranked,
            "partitions_published": self.partitions_published,
            "stale_partitions_cleared": self.stale_partitions_cleared,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class LeaderboardAggregationService:
    """Recomputes every leaderboard partition from the completed events.

    Each run is a full recompute: extract participation, fold it into
    per-user tallies, rank every partition and overwrite the snapshots.
    Runs are serialized by ``lock``.
    """

    def __init__(
        self,
        db: AsyncSession,
        lock: RunLock,
        config: RankingConfig | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.db = db
        self.lock = lock
        self.config = config or RankingConfig.from_settings()
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.leaderboard_run_timeout_seconds
        )
        self.jobs = JobService(db)
        self.leaderboards = LeaderboardService(db)

    async def run(
        self,
        trigger: RunTrigger,
        triggered_by: str | None = None,
    ) -> AggregationResult:
        if not await self.lock.acquire():
            logger.warning("Aggregation already running", lock=self.lock.name, trigger=trigger.value)
            raise AggregationInProgressError(self.lock.name)

        try:
            return await self._run_locked(trigger, triggered_by)
        finally:
            await self.lock.release()

    async def _run_locked(
        self,
        trigger: RunTrigger,
        triggered_by: str | None,
    ) -> AggregationResult:
        run = await self.jobs.start_run(trigger, triggered_by)
        result = AggregationResult(run_id=run.id, status=RunStatus.RUNNING)
        started = time.monotonic()

        try:
            await asyncio.wait_for(self._aggregate(result), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            await self._record_failure(result, f"Timed out after {self.timeout_seconds}s")
            raise AggregationTimeoutError(self.timeout_seconds) from e
        except Exception as e:
            await self._record_failure(result, str(e) or e.__class__.__name__)
            raise

        result.status = RunStatus.COMPLETED
        result.duration_seconds = time.monotonic() - started
        await self.jobs.finish_run(
            run,
            events_processed=result.events_processed,
            users_ranked=result.users_ranked,
            partitions_published=result.partitions_published,
        )

        logger.info("Leaderboards recalculated", **result.to_dict())
        return result

    async def _aggregate(self, result: AggregationResult) -> None:
        participation = await ParticipationExtractor(self.db).extract()
        result.events_processed = len(participation.events)

        summaries = accumulate(participation.events, participation.profiles)
        result.users_ranked = len(summaries)

        rankings = build_rankings(
            summaries,
            observed_sport_types(participation.events),
            self.config,
        )

        for ranking in rankings:
            await self.leaderboards.publish_snapshot(ranking)
            result.partitions_published += 1

        if self.config.empty_partition_policy == EmptyPartitionPolicy.PUBLISH:
            result.stale_partitions_cleared = await self.leaderboards.clear_stale_snapshots(
                {r.key for r in rankings}
            )

    async def _record_failure(self, result: AggregationResult, message: str) -> None:
        result.status = RunStatus.FAILED
        logger.error(
            "Leaderboard aggregation failed",
            run_id=result.run_id,
            partitions_published=result.partitions_published,
            error=message,
        )
        try:
            await self.db.rollback()
            run = await self.jobs.get_run(result.run_id)
            if run is not None:
                await self.jobs.fail_run(run, message, result.partitions_published)
        except Exception:
            # The original error is re-raised by the caller
            logger.exception("Could not record failed aggregation run", run_id=result.run_id)
