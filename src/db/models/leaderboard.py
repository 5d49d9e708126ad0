from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.db.models.base import Base, JSONType

ALL_SPORTS = "ALL"


class LeaderboardScope(str, Enum):
    GLOBAL = "GLOBAL"
    CORPORATE = "CORPORATE"


class LeaderboardSnapshot(Base):
    """One published partition of the leaderboard, fully replaced on every run."""

    __tablename__ = "leaderboards"

    # Partition key, e.g. "global_all" or "corporate_acme-corp_cricket"
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    scope: Mapped[LeaderboardScope] = mapped_column(
        SAEnum(LeaderboardScope, native_enum=False, length=20),
        nullable=False,
    )
    company: Mapped[str | None] = mapped_column(String(255))
    sport_type: Mapped[str] = mapped_column(String(100), nullable=False)
    rankings: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_leaderboards_scope_sport", "scope", "sport_type"),
        Index("idx_leaderboards_company", "company"),
    )

    def __repr__(self) -> str:
        return f"<LeaderboardSnapshot {self.id} entries={len(self.rankings or [])}>"
