from src.api.schemas.event import EventCreate, EventDetail, EventList, EventStatusUpdate
from src.api.schemas.job import AggregationRunDetail, AggregationRunList
from src.api.schemas.leaderboard import (
    AggregationRunSummary,
    CalculateLeaderboardsResponse,
    LeaderboardListResponse,
    LeaderboardSnapshotSchema,
    RankingEntrySchema,
)

__all__ = [
    "EventCreate",
    "EventDetail",
    "EventList",
    "EventStatusUpdate",
    "AggregationRunDetail",
    "AggregationRunList",
    "RankingEntrySchema",
    "LeaderboardSnapshotSchema",
    "LeaderboardListResponse",
    "AggregationRunSummary",
    "CalculateLeaderboardsResponse",
]
