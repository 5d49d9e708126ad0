from enum import Enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.models.base import Base, TimestampMixin


class UserRole(str, Enum):
    USER = "USER"
    CORPORATE_ADMIN = "CORPORATE_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class UserAccount(Base, TimestampMixin):
    __tablename__ = "users"

    # Identity uid issued by the external auth provider
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    company: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, native_enum=False, length=32),
        default=UserRole.USER,
    )
    city: Mapped[str | None] = mapped_column(String(255))

    # Running profile stats, bumped when an event completes
    events_attended: Mapped[int] = mapped_column(default=0, server_default="0", nullable=False)
    events_created: Mapped[int] = mapped_column(default=0, server_default="0", nullable=False)
    total_points: Mapped[int] = mapped_column(default=0, server_default="0", nullable=False)

    __table_args__ = (Index("idx_users_company", "company"),)

    def __repr__(self) -> str:
        return f"<UserAccount {self.id}>"
