from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_identity
from src.api.schemas.event import EventCreate, EventDetail, EventList, EventStatusUpdate
from src.core.config import settings
from src.core.exceptions import EventJoinError, EventNotFoundError, InvalidStatusTransitionError
from src.db import get_db
from src.db.models.event import EventStatus
from src.services.event_service import EventService
from src.services.identity_service import CallerIdentity

router = APIRouter()


@router.post(
    "",
    response_model=EventDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event",
)
async def create_event(
    data: EventCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> EventDetail:
    service = EventService(db)
    event = await service.create_event(
        title=data.title,
        max_participants=data.max_participants,
        created_by=identity.uid,
        sport_type=data.sport_type,
        company=data.company,
        location=data.location,
        starts_at=data.starts_at,
    )
    return EventDetail.model_validate(event)


@router.get(
    "",
    response_model=EventList,
    summary="List events",
)
async def list_events(
    status_filter: EventStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.api_pagination_default_limit, ge=1, le=settings.api_pagination_max_limit
    ),
    db: AsyncSession = Depends(get_db),
) -> EventList:
    service = EventService(db)
    events, total = await service.list_events(status_filter, page, page_size)
    return EventList(
        events=[EventDetail.model_validate(e) for e in events],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{event_id}",
    response_model=EventDetail,
    summary="Get event details",
)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
) -> EventDetail:
    service = EventService(db)
    event = await service.get_event(event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    return EventDetail.model_validate(event)


@router.post(
    "/{event_id}/join",
    response_model=EventDetail,
    summary="Join an event as the calling user",
)
async def join_event(
    event_id: str,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> EventDetail:
    service = EventService(db)
    try:
        event = await service.join_event(event_id, identity.uid)
    except EventNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.user_message)
    except EventJoinError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.user_message)
    return EventDetail.model_validate(event)


@router.patch(
    "/{event_id}/status",
    response_model=EventDetail,
    summary="Move an event through its lifecycle",
)
async def update_event_status(
    event_id: str,
    data: EventStatusUpdate,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> EventDetail:
    service = EventService(db)
    event = await service.get_event(event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    if event.created_by != identity.uid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the event creator can change its status",
        )
    try:
        event = await service.update_status(event_id, data.status)
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.user_message)
    return EventDetail.model_validate(event)
