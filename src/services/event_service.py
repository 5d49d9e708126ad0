import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import EventJoinError, EventNotFoundError, InvalidStatusTransitionError
from src.db.models.event import Event, EventStatus
from src.db.models.user import UserAccount

logger = structlog.get_logger()

TERMINAL_STATUSES = {EventStatus.COMPLETED, EventStatus.CANCELLED}

ALLOWED_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.UPCOMING: {EventStatus.ONGOING, EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.ONGOING: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELLED: set(),
}


class EventService:
    """Service for events and their participant rosters."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_event(
        self,
        title: str,
        max_participants: int,
        created_by: str,
        sport_type: str | None = None,
        company: str | None = None,
        location: str | None = None,
        starts_at: datetime | None = None,
    ) -> Event:
        event = Event(
            id=uuid.uuid4().hex,
            title=title,
            sport_type=sport_type,
            company=company,
            location=location,
            starts_at=starts_at,
            max_participants=max_participants,
            created_by=created_by,
            status=EventStatus.UPCOMING,
            participants=[],
        )
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)

        logger.info("Event created", event_id=event.id, sport_type=sport_type, company=company)
        return event

    async def get_event(self, event_id: str) -> Event | None:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_events(
        self,
        status: EventStatus | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Event], int]:
        offset = (page - 1) * page_size

        query = select(Event)
        count_query = select(func.count(Event.id))
        if status is not None:
            query = query.where(Event.status == status)
            count_query = count_query.where(Event.status == status)

        count_result = await self.db.execute(count_query)
        total = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(Event.starts_at, Event.id).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def join_event(self, event_id: str, user_id: str) -> Event:
        """Add ``user_id`` to the roster. Joining twice is rejected, never duplicated."""
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).with_for_update()
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise EventNotFoundError(event_id)

        participants = list(event.participants or [])
        if event.status in TERMINAL_STATUSES:
            raise EventJoinError(
                f"Event {event_id} is {event.status.value}",
                "This event is no longer open",
            )
        if user_id in participants:
            raise EventJoinError(
                f"User {user_id} already in event {event_id}",
                "You have already joined this event",
            )
        if len(participants) >= event.max_participants:
            raise EventJoinError(f"Event {event_id} is full", "Event is full")

        # Reassign so the JSON column is flagged dirty
        event.participants = [*participants, user_id]
        await self.db.flush()
        await self.db.refresh(event)

        logger.info("User joined event", event_id=event_id, user_id=user_id)
        return event

    async def update_status(self, event_id: str, status: EventStatus) -> Event:
        event = await self.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)

        if status == event.status:
            return event
        if status not in ALLOWED_TRANSITIONS[event.status]:
            raise InvalidStatusTransitionError(event.status.value, status.value)

        previous = event.status
        event.status = status
        if status == EventStatus.COMPLETED:
            await self._credit_completion(event)
        await self.db.flush()
        await self.db.refresh(event)

        logger.info(
            "Event status changed",
            event_id=event_id,
            previous=previous.value,
            status=status.value,
        )
        return event

    async def _credit_completion(self, event: Event) -> None:
        """Bump attendance and hosting stats in the same transaction as the status change."""
        participants = list(dict.fromkeys(event.participants or []))
        if participants:
            result = await self.db.execute(
                update(UserAccount)
                .where(UserAccount.id.in_(participants))
                .values(
                    events_attended=UserAccount.events_attended + 1,
                    total_points=UserAccount.total_points + settings.event_attendance_points,
                )
            )
            if result.rowcount < len(participants):
                logger.warning(
                    "Participants without user records not credited",
                    event_id=event.id,
                    missing=len(participants) - result.rowcount,
                )

        if event.created_by:
            await self.db.execute(
                update(UserAccount)
                .where(UserAccount.id == event.created_by)
                .values(
                    events_created=UserAccount.events_created + 1,
                    total_points=UserAccount.total_points + settings.event_hosting_points,
                )
            )

        logger.info(
            "Credited event completion",
            event_id=event.id,
            participants=len(participants),
            created_by=event.created_by,
        )
