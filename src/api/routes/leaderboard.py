import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_aggregation_lock, require_trigger_role
from src.api.schemas.leaderboard import (
    AggregationRunSummary,
    CalculateLeaderboardsResponse,
    LeaderboardListResponse,
    LeaderboardSnapshotSchema,
)
from src.core.exceptions import AggregationInProgressError
from src.db import get_db
from src.db.models.job import RunTrigger
from src.db.models.leaderboard import LeaderboardScope
from src.services.aggregation_service import LeaderboardAggregationService
from src.services.identity_service import CallerIdentity
from src.services.leaderboard_service import LeaderboardService
from src.services.lock_service import AggregationLock

logger = structlog.get_logger()

router = APIRouter()


@router.get(
    "",
    response_model=LeaderboardListResponse,
    summary="Query published leaderboards",
)
async def get_leaderboards(
    scope: LeaderboardScope = Query(LeaderboardScope.GLOBAL),
    sport_type: str | None = Query(None, description="Exact sport type, or ALL"),
    company: str | None = Query(None, description="Only used with CORPORATE scope"),
    db: AsyncSession = Depends(get_db),
) -> LeaderboardListResponse:
    """Get precomputed leaderboards. An empty list means none computed yet."""
    service = LeaderboardService(db)
    snapshots = await service.get_leaderboards(scope, sport_type, company)
    return LeaderboardListResponse(
        leaderboards=[LeaderboardSnapshotSchema.model_validate(s) for s in snapshots],
    )


@router.post(
    "/calculate",
    response_model=CalculateLeaderboardsResponse,
    summary="Recalculate all leaderboards now",
)
async def calculate_leaderboards(
    identity: CallerIdentity = Depends(require_trigger_role),
    lock: AggregationLock = Depends(get_aggregation_lock),
    db: AsyncSession = Depends(get_db),
) -> CalculateLeaderboardsResponse:
    """Run a full aggregation synchronously on behalf of the caller."""
    service = LeaderboardAggregationService(db, lock)
    try:
        result = await service.run(RunTrigger.MANUAL, triggered_by=identity.uid)
    except AggregationInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.user_message)
    except Exception:
        logger.exception("Manual leaderboard calculation failed", triggered_by=identity.uid)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to calculate leaderboards",
        )

    return CalculateLeaderboardsResponse(
        success=True,
        message="Leaderboards calculated successfully",
        run=AggregationRunSummary(**result.to_dict()),
    )


@router.get(
    "/{key}",
    response_model=LeaderboardSnapshotSchema,
    summary="Get one leaderboard partition",
)
async def get_leaderboard(
    key: str,
    db: AsyncSession = Depends(get_db),
) -> LeaderboardSnapshotSchema:
    service = LeaderboardService(db)
    snapshot = await service.get_leaderboard(key)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Leaderboard {key} not found",
        )
    return LeaderboardSnapshotSchema.model_validate(snapshot)
