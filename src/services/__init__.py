from src.services.aggregation_service import AggregationResult, LeaderboardAggregationService
from src.services.event_service import EventService
from src.services.identity_service import CallerIdentity, IdentityService
from src.services.job_service import JobService
from src.services.leaderboard_service import LeaderboardService
from src.services.lock_service import AggregationLock
from src.services.participation_service import ParticipationExtractor
from src.services.ranking_service import RankingConfig, build_rankings

__all__ = [
    "LeaderboardAggregationService",
    "AggregationResult",
    "AggregationLock",
    "ParticipationExtractor",
    "RankingConfig",
    "build_rankings",
    "LeaderboardService",
    "JobService",
    "EventService",
    "IdentityService",
    "CallerIdentity",
]
