from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.event import Event, EventStatus
from src.db.models.user import UserAccount

logger = structlog.get_logger()

OTHER_SPORT = "OTHER"
UNKNOWN_USER_NAME = "Unknown"


@dataclass(frozen=True)
class CompletedEvent:
    event_id: str
    sport_type: str
    company: str
    participants: tuple[str, ...]


@dataclass(frozen=True)
class ResolvedProfile:
    display_name: str
    company: str


UNKNOWN_PROFILE = ResolvedProfile(display_name=UNKNOWN_USER_NAME, company="")


@dataclass
class ParticipationSet:
    """Completed events plus the profiles of everyone who attended them."""

    events: list[CompletedEvent] = field(default_factory=list)
    profiles: dict[str, ResolvedProfile] = field(default_factory=dict)


def normalize_sport_type(sport_type: str | None) -> str:
    """Map a missing or blank sport type onto the OTHER bucket."""
    if sport_type is None or not sport_type.strip():
        return OTHER_SPORT
    return sport_type.strip()


def to_completed_event(event: Event) -> CompletedEvent:
    # Rosters have set semantics; keep first occurrence order
    participants = tuple(dict.fromkeys(p for p in (event.participants or []) if p))
    return CompletedEvent(
        event_id=event.id,
        sport_type=normalize_sport_type(event.sport_type),
        company=(event.company or "").strip(),
        participants=participants,
    )


class ParticipationExtractor:
    """Reads completed events and resolves their participants' affiliations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def extract(self) -> ParticipationSet:
        """Load every COMPLETED event and resolve each participant once.

        The user cache lives only for this call, so nothing resolved in one
        run can leak into the next.
        """
        result = await self.db.execute(
            select(Event).where(Event.status == EventStatus.COMPLETED).order_by(Event.id)
        )
        events = [to_completed_event(e) for e in result.scalars().all()]

        profiles: dict[str, ResolvedProfile] = {}
        for event in events:
            for user_id in event.participants:
                if user_id not in profiles:
                    profiles[user_id] = await self._resolve_user(user_id)

        missing = sum(1 for p in profiles.values() if p is UNKNOWN_PROFILE)
        logger.info(
            "Extracted participation",
            completed_events=len(events),
            users=len(profiles),
            missing_users=missing,
        )
        return ParticipationSet(events=events, profiles=profiles)

    async def _resolve_user(self, user_id: str) -> ResolvedProfile:
        user = await self.db.get(UserAccount, user_id)
        if user is None:
            logger.warning("Participant has no user record", user_id=user_id)
            return UNKNOWN_PROFILE
        return ResolvedProfile(
            display_name=user.name or UNKNOWN_USER_NAME,
            company=(user.company or "").strip(),
        )
