from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.models.base import Base, TimestampMixin


class RunTrigger(str, Enum):
    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"
    CLI = "CLI"


class RunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AggregationRun(Base, TimestampMixin):
    __tablename__ = "aggregation_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    trigger: Mapped[RunTrigger] = mapped_column(
        SAEnum(RunTrigger, native_enum=False, length=20),
        nullable=False,
    )
    triggered_by: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[RunStatus] = mapped_column(
        SAEnum(RunStatus, native_enum=False, length=20),
        default=RunStatus.RUNNING,
        nullable=False,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    events_processed: Mapped[int] = mapped_column(default=0)
    users_ranked: Mapped[int] = mapped_column(default=0)
    partitions_published: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("idx_aggregation_runs_status", "status"),)

    def __repr__(self) -> str:
        return f"<AggregationRun {self.id} {self.trigger} status={self.status}>"
