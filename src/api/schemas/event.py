from datetime import datetime

from pydantic import BaseModel, Field

from src.db.models.event import EventStatus


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    sport_type: str | None = Field(None, max_length=100)
    company: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)
    starts_at: datetime | None = None
    max_participants: int = Field(..., ge=1)


class EventStatusUpdate(BaseModel):
    status: EventStatus


class EventDetail(BaseModel):
    id: str
    title: str
    sport_type: str | None
    company: str | None
    location: str | None
    starts_at: datetime | None
    status: EventStatus
    participants: list[str]
    max_participants: int
    created_by: str | None

    model_config = {"from_attributes": True}


class EventList(BaseModel):
    events: list[EventDetail]
    total: int
    page: int
    page_size: int
