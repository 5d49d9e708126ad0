from src.db.models.base import Base
from src.db.models.event import Event, EventStatus
from src.db.models.job import AggregationRun, RunStatus, RunTrigger
from src.db.models.leaderboard import ALL_SPORTS, LeaderboardScope, LeaderboardSnapshot
from src.db.models.user import UserAccount, UserRole

__all__ = [
    "Base",
    "Event",
    "EventStatus",
    "UserAccount",
    "UserRole",
    "LeaderboardSnapshot",
    "LeaderboardScope",
    "ALL_SPORTS",
    "AggregationRun",
    "RunStatus",
    "RunTrigger",
]
