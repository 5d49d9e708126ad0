from datetime import datetime

from pydantic import BaseModel

from src.db.models.leaderboard import LeaderboardScope


class RankingEntrySchema(BaseModel):
    rank: int
    user_id: str
    user_name: str
    company: str
    score: int
    events_attended: int


class LeaderboardSnapshotSchema(BaseModel):
    id: str
    scope: LeaderboardScope
    company: str | None
    sport_type: str
    rankings: list[RankingEntrySchema]
    last_updated: datetime

    model_config = {"from_attributes": True}


class LeaderboardListResponse(BaseModel):
    success: bool = True
    leaderboards: list[LeaderboardSnapshotSchema]


class AggregationRunSummary(BaseModel):
    run_id: int
    status: str
    events_processed: int
    users_ranked: int
    partitions_published: int
    stale_partitions_cleared: int
    duration_seconds: float


class CalculateLeaderboardsResponse(BaseModel):
    success: bool
    message: str
    run: AggregationRunSummary | None = None
