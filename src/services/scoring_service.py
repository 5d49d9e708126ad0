from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from src.services.participation_service import (
    UNKNOWN_PROFILE,
    CompletedEvent,
    ResolvedProfile,
)

logger = structlog.get_logger()


@dataclass
class UserAccountSummary:
    """Per-user tally for one aggregation run. Never persisted."""

    user_id: str
    display_name: str
    profile_company: str = ""
    events_attended: int = 0
    sport_counts: Counter = field(default_factory=Counter)
    host_companies: Counter = field(default_factory=Counter)

    @property
    def company(self) -> str:
        """Profile company, else the hosting company seen most often, else ""."""
        if self.profile_company:
            return self.profile_company
        if not self.host_companies:
            return ""
        # Most frequent first, then alphabetical, so event order never matters
        return min(self.host_companies.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    def count_for(self, sport_type: str | None) -> int:
        """Attended count for a sport type, or overall when sport_type is None."""
        if sport_type is None:
            return self.events_attended
        return self.sport_counts.get(sport_type, 0)


def accumulate(
    events: Iterable[CompletedEvent],
    profiles: Mapping[str, ResolvedProfile],
) -> dict[str, UserAccountSummary]:
    """Fold (event, participant) pairs into per-user tallies.

    Only addition happens here, so permuting ``events`` gives the same result.
    """
    summaries: dict[str, UserAccountSummary] = {}

    for event in events:
        for user_id in event.participants:
            summary = summaries.get(user_id)
            if summary is None:
                profile = profiles.get(user_id, UNKNOWN_PROFILE)
                summary = UserAccountSummary(
                    user_id=user_id,
                    display_name=profile.display_name,
                    profile_company=profile.company,
                )
                summaries[user_id] = summary

            summary.events_attended += 1
            summary.sport_counts[event.sport_type] += 1
            if event.company:
                summary.host_companies[event.company] += 1

    return summaries


def merge_tallies(*tallies: Mapping[str, UserAccountSummary]) -> dict[str, UserAccountSummary]:
    """Combine partial tallies built from disjoint event shards."""
    merged: dict[str, UserAccountSummary] = {}

    for tally in tallies:
        for user_id, part in tally.items():
            target = merged.get(user_id)
            if target is None:
                target = UserAccountSummary(
                    user_id=user_id,
                    display_name=part.display_name,
                    profile_company=part.profile_company,
                )
                merged[user_id] = target
            target.events_attended += part.events_attended
            target.sport_counts.update(part.sport_counts)
            target.host_companies.update(part.host_companies)

    return merged


def observed_sport_types(events: Iterable[CompletedEvent]) -> list[str]:
    """Every sport type appearing on a completed event, rosters empty or not."""
    return sorted({event.sport_type for event in events})
