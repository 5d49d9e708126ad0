import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.leaderboard import LeaderboardScope, LeaderboardSnapshot
from src.services.ranking_service import Ranking

logger = structlog.get_logger()


def _same_company(company: str | None):
    if company is None:
        return LeaderboardSnapshot.company.is_(None)
    return LeaderboardSnapshot.company == company


class LeaderboardService:
    """Service for publishing and querying leaderboard snapshots."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_leaderboards(
        self,
        scope: LeaderboardScope = LeaderboardScope.GLOBAL,
        sport_type: str | None = None,
        company: str | None = None,
    ) -> list[LeaderboardSnapshot]:
        """Get published snapshots for a scope, optionally narrowed.

        ``company`` only applies to the corporate scope. An empty list means
        nothing has been computed for the filter yet.
        """
        query = select(LeaderboardSnapshot).where(LeaderboardSnapshot.scope == scope)

        if sport_type:
            query = query.where(LeaderboardSnapshot.sport_type == sport_type)
        if company and scope == LeaderboardScope.CORPORATE:
            query = query.where(LeaderboardSnapshot.company == company)

        result = await self.db.execute(
            query.order_by(LeaderboardSnapshot.id).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_leaderboard(self, key: str) -> LeaderboardSnapshot | None:
        """Get a single snapshot by partition key."""
        result = await self.db.execute(
            select(LeaderboardSnapshot)
            .where(LeaderboardSnapshot.id == key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def publish_snapshot(self, ranking: Ranking) -> None:
        """Write one partition, replacing whatever was there before."""
        snapshot = await self.db.get(LeaderboardSnapshot, ranking.key)
        if snapshot is None:
            snapshot = LeaderboardSnapshot(id=ranking.key)
            self.db.add(snapshot)

        snapshot.scope = ranking.scope
        snapshot.company = ranking.company
        snapshot.sport_type = ranking.sport_type
        snapshot.rankings = [entry.to_dict() for entry in ranking.entries]
        # Assigned by the database clock
        snapshot.last_updated = func.now()

        # A partition keeps one row even if its slug changed since the last run
        superseded = await self.db.execute(
            delete(LeaderboardSnapshot)
            .where(
                LeaderboardSnapshot.id != ranking.key,
                LeaderboardSnapshot.scope == ranking.scope,
                LeaderboardSnapshot.sport_type == ranking.sport_type,
                _same_company(ranking.company),
            )
        )
        if superseded.rowcount:
            logger.warning(
                "Removed leaderboard snapshots under a superseded key",
                key=ranking.key,
                count=superseded.rowcount,
            )

        await self.db.commit()
        logger.debug("Published leaderboard snapshot", key=ranking.key, entries=len(ranking.entries))

    async def clear_stale_snapshots(self, keep_keys: set[str]) -> int:
        """Empty every snapshot that the current run did not produce."""
        result = await self.db.execute(select(LeaderboardSnapshot.id))
        stale = sorted(set(result.scalars().all()) - keep_keys)

        for key in stale:
            snapshot = await self.db.get(LeaderboardSnapshot, key)
            if snapshot is None:
                continue
            snapshot.rankings = []
            snapshot.last_updated = func.now()
            await self.db.commit()

        if stale:
            logger.info("Cleared stale leaderboard snapshots", count=len(stale))
        return len(stale)
