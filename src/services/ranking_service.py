import hashlib
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum

import structlog

from src.core.config import settings
from src.db.models.leaderboard import ALL_SPORTS, LeaderboardScope
from src.services.scoring_service import UserAccountSummary

logger = structlog.get_logger()

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class EmptyPartitionPolicy(str, Enum):
    SKIP = "skip"
    PUBLISH = "publish"


@dataclass(frozen=True)
class RankingConfig:
    points_per_event: int = 10
    max_ranking_size: int | None = 100
    empty_partition_policy: EmptyPartitionPolicy = EmptyPartitionPolicy.SKIP

    def __post_init__(self) -> None:
        if self.max_ranking_size is not None and self.max_ranking_size < 0:
            raise ValueError("max_ranking_size must not be negative")

    @classmethod
    def from_settings(cls) -> "RankingConfig":
        return cls(
            points_per_event=settings.leaderboard_points_per_event,
            max_ranking_size=settings.leaderboard_max_ranking_size,
            empty_partition_policy=EmptyPartitionPolicy(
                settings.leaderboard_empty_partition_policy
            ),
        )


@dataclass(frozen=True)
class RankingEntry:
    rank: int
    user_id: str
    user_name: str
    company: str
    score: int
    events_attended: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Ranking:
    key: str
    scope: LeaderboardScope
    company: str | None
    sport_type: str
    entries: list[RankingEntry] = field(default_factory=list)


def slugify(value: str) -> str:
    """Lower-case and collapse every run of non-alphanumerics into '-'."""
    slug = _NON_ALNUM.sub("-", value.lower()).strip("-")
    return slug or "unnamed"


def assign_slugs(names: Iterable[str], reserved: Iterable[str] = ()) -> dict[str, str]:
    """Give every distinct name a storage-safe slug.

    Names that would share a slug with another name, or with a reserved slug,
    get a short hash of the original name appended. The result depends only
    on the set of names, never on their order.
    """
    reserved = set(reserved)
    groups: dict[str, set[str]] = defaultdict(set)
    for name in names:
        groups[slugify(name)].add(name)

    slugs: dict[str, str] = {}
    for base, group in groups.items():
        if len(group) == 1 and base not in reserved:
            slugs[next(iter(group))] = base
            continue
        logger.warning("Slug collision", slug=base, names=sorted(group))
        for name in group:
            digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
            slugs[name] = f"{base}-{digest}"
    return slugs


def build_partition_key(
    scope: LeaderboardScope,
    sport_slug: str,
    company_slug: str | None = None,
) -> str:
    parts = [scope.value.lower()]
    if company_slug:
        parts.append(company_slug)
    parts.append(sport_slug)
    return "_".join(parts)


def rank_users(
    summaries: Iterable[UserAccountSummary],
    sport_type: str | None,
    config: RankingConfig,
    company: str | None = None,
) -> list[RankingEntry]:
    """Rank users by attended count for one partition.

    ``sport_type`` None ranks overall attendance; ``company`` None ranks
    everyone. Users with a zero count for the partition are left out.
    Ties on score are broken by user id ascending.
    """
    candidates = [
        s
        for s in summaries
        if s.count_for(sport_type) > 0 and (company is None or s.company == company)
    ]
    candidates.sort(key=lambda s: (-s.count_for(sport_type), s.user_id))

    if config.max_ranking_size:
        candidates = candidates[: config.max_ranking_size]

    return [
        RankingEntry(
            rank=position,
            user_id=s.user_id,
            user_name=s.display_name,
            company=s.company,
            score=s.count_for(sport_type) * config.points_per_event,
            events_attended=s.count_for(sport_type),
        )
        for position, s in enumerate(candidates, start=1)
    ]


def build_rankings(
    summaries: Mapping[str, UserAccountSummary],
    sport_types: Iterable[str],
    config: RankingConfig,
) -> list[Ranking]:
    """Produce every global and corporate ranking for one run."""
    users = list(summaries.values())
    sport_types = sorted(set(sport_types))
    sport_slugs = assign_slugs(sport_types, reserved={ALL_SPORTS.lower()})

    rankings: list[Ranking] = [
        Ranking(
            key=build_partition_key(LeaderboardScope.GLOBAL, ALL_SPORTS.lower()),
            scope=LeaderboardScope.GLOBAL,
            company=None,
            sport_type=ALL_SPORTS,
            entries=rank_users(users, None, config),
        )
    ]
    for sport in sport_types:
        rankings.append(
            Ranking(
                key=build_partition_key(LeaderboardScope.GLOBAL, sport_slugs[sport]),
                scope=LeaderboardScope.GLOBAL,
                company=None,
                sport_type=sport,
                entries=rank_users(users, sport, config),
            )
        )

    companies = sorted({u.company for u in users if u.company})
    company_slugs = assign_slugs(companies)

    for company in companies:
        company_slug = company_slugs[company]
        rankings.append(
            Ranking(
                key=build_partition_key(
                    LeaderboardScope.CORPORATE, ALL_SPORTS.lower(), company_slug
                ),
                scope=LeaderboardScope.CORPORATE,
                company=company,
                sport_type=ALL_SPORTS,
                entries=rank_users(users, None, config, company=company),
            )
        )
        for sport in sport_types:
            entries = rank_users(users, sport, config, company=company)
            if not entries and config.empty_partition_policy == EmptyPartitionPolicy.SKIP:
                continue
            rankings.append(
                Ranking(
                    key=build_partition_key(
                        LeaderboardScope.CORPORATE, sport_slugs[sport], company_slug
                    ),
                    scope=LeaderboardScope.CORPORATE,
                    company=company,
                    sport_type=sport,
                    entries=entries,
                )
            )

    logger.info(
        "Built rankings",
        partitions=len(rankings),
        companies=len(companies),
        sport_types=len(sport_types),
    )
    return rankings
