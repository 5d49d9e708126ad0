from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.schemas.job import AggregationRunDetail, AggregationRunList
from src.core.config import settings
from src.db import get_db
from src.services.job_service import JobService

router = APIRouter()


@router.get(
    "",
    response_model=AggregationRunList,
    summary="List recent aggregation runs",
)
async def list_runs(
    status_filter: str | None = Query(None, alias="status", description="Filter by run status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.api_pagination_default_limit, ge=1, le=settings.api_pagination_max_limit
    ),
    db: AsyncSession = Depends(get_db),
) -> AggregationRunList:
    """Get a list of recent leaderboard aggregation runs."""
    service = JobService(db)
    runs, total = await service.list_runs(status_filter, page, page_size)
    return AggregationRunList(
        runs=[AggregationRunDetail.model_validate(r) for r in runs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{run_id}",
    response_model=AggregationRunDetail,
    summary="Get one aggregation run",
)
async def get_run(
    run_id: int,
    db: AsyncSession = Depends(get_db),
) -> AggregationRunDetail:
    service = JobService(db)
    run = await service.get_run(run_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Aggregation run {run_id} not found",
        )
    return AggregationRunDetail.model_validate(run)
