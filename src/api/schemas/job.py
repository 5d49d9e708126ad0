from datetime import datetime

from pydantic import BaseModel

from src.db.models.job import RunStatus, RunTrigger


class AggregationRunDetail(BaseModel):
    id: int
    trigger: RunTrigger
    triggered_by: str | None
    status: RunStatus
    started_at: datetime | None
    completed_at: datetime | None
    events_processed: int
    users_ranked: int
    partitions_published: int
    error_message: str | None

    model_config = {"from_attributes": True}


class AggregationRunList(BaseModel):
    runs: list[AggregationRunDetail]
    total: int
    page: int
    page_size: int
