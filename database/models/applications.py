"""
Application Models

Submitted applications, the reviews staff leave on them, and the
normalized/decision fields the review engine maintains.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Integer,
    ForeignKey,
    DateTime,
    Numeric,
    func,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from database.engine import Base
from database.models.users import enum_values, new_uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User


# ==================== Application Enums ===================== #
class SubmissionStatus(str, PyEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class InternalResult(str, PyEnum):
    """Internal decision bucket for a submitted application."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


# ==================== Models ===================== #
class Application(Base):
    """
    An applicant's submitted materials and their aggregated review state.

    review_count and average_rating are maintained by the review submission
    flow. normalized_avg_rating and last_normalized_at are written only by
    the normalization run; internal_result only by bulk decisions.
    """

    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint("review_count >= 0", name="ck_applications_review_count"),
        CheckConstraint(
            "normalized_avg_rating IS NULL OR "
            "(normalized_avg_rating >= 0 AND normalized_avg_rating <= 1000)",
            name="ck_applications_normalized_range",
        ),
        Index("ix_applications_submission_result", "submission_status", "internal_result"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Contact details used for previews
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    email: Mapped[str | None] = mapped_column(String(255))

    submission_status: Mapped[SubmissionStatus] = mapped_column(
        SQLEnum(SubmissionStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=SubmissionStatus.DRAFT,
    )
    internal_result: Mapped[InternalResult] = mapped_column(
        SQLEnum(InternalResult, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=InternalResult.PENDING,
    )

    # Ratings are stored on a x100 integer scale (6.25 -> 625)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[int | None] = mapped_column(Integer)
    normalized_avg_rating: Mapped[int | None] = mapped_column(Integer)
    last_normalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="application")
    reviews: Mapped[list["ApplicationReview"]] = relationship(
        "ApplicationReview", back_populates="application", cascade="all, delete-orphan"
    )


class ApplicationReview(Base):
    """
    One reviewer's score for one application.
    """

    __tablename__ = "application_reviews"
    __table_args__ = (
        UniqueConstraint("application_id", "reviewer_id", name="uq_review_application_reviewer"),
        CheckConstraint("rating >= 1 AND rating <= 10", name="ck_review_rating_range"),
        CheckConstraint(
            "adjusted_rating IS NULL OR (adjusted_rating >= 0 AND adjusted_rating <= 10)",
            name="ck_review_adjusted_range",
        ),
        CheckConstraint(
            "review_duration IS NULL OR review_duration >= 0",
            name="ck_review_duration",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    application_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    # Written only by the normalization run
    adjusted_rating: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    review_duration: Mapped[int | None] = mapped_column(Integer)  # seconds

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    application: Mapped["Application"] = relationship(
        "Application", back_populates="reviews"
    )
    reviewer: Mapped["User"] = relationship("User", back_populates="reviews")
