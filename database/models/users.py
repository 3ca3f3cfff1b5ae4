from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    DateTime,
    func,
    Enum as SQLEnum,
)
from database.engine import Base
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from database.models.applications import Application, ApplicationReview


# ==================== User Enums ===================== #
class UserRole(str, PyEnum):
    ADMIN = "admin"  # full dashboard access, runs bulk decisions
    ORGANIZER = "organizer"  # staff account that reviews applications
    HACKER = "hacker"  # applicant
    UNASSIGNED = "unassigned"


class UserApplicationStatus(str, PyEnum):
    """Decision status as seen from the applicant's account."""

    NOT_APPLIED = "not_applied"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


def new_uuid() -> str:
    return str(uuid.uuid4())


def enum_values(enum_cls: type[PyEnum]) -> list[str]:
    """Persist enum values ('pending') rather than member names ('PENDING')."""
    return [member.value for member in enum_cls]


class User(Base):
    """
    Account record for applicants and staff reviewers.
    """

    __tablename__: str = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=UserRole.UNASSIGNED,
    )

    # Decision state, mirrored onto Application.internal_result by bulk actions
    application_status: Mapped[UserApplicationStatus] = mapped_column(
        SQLEnum(UserApplicationStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=UserApplicationStatus.NOT_APPLIED,
        index=True,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    application: Mapped["Application | None"] = relationship(
        "Application", back_populates="user", uselist=False
    )
    reviews: Mapped[list["ApplicationReview"]] = relationship(
        "ApplicationReview", back_populates="reviewer"
    )

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""
