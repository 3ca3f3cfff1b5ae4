"""Shared fixtures and utilities for tests."""

import os

# Settings are read when core.config is first imported, so the test
# environment has to be in place before any application module loads.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "redis://localhost:6379/1")
os.environ.setdefault("CELERY_RESULT_BACKEND", "redis://localhost:6379/2")
os.environ.setdefault("NORMALIZATION_LOCK_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "INFO")

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.pool import StaticPool

from database.engine import Base
from database.models import (
    Application,
    ApplicationReview,
    InternalResult,
    SubmissionStatus,
    User,
    UserApplicationStatus,
    UserRole,
)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session maker bound to the test database; each step opens its own session."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def seed(session_factory):
    """Helper for inserting users, applications and reviews."""
    return Seeder(session_factory)


class Seeder:
    """Creates committed rows so services can be exercised against real SQL."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = 0
        self._created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def reviewer(self, name: Optional[str] = None) -> User:
        n = self._next()
        reviewer = User(
            id=f"reviewer-{n:03d}",
            name=name or f"Reviewer {n}",
            email=f"reviewer{n}@example.com",
            role=UserRole.ORGANIZER,
        )
        async with self.session_factory() as session:
            session.add(reviewer)
            await session.commit()
        return reviewer

    async def applicant(
        self,
        status: InternalResult = InternalResult.PENDING,
        ratings: Optional[list[tuple[User, int]]] = None,
        submitted: bool = True,
        name: Optional[str] = None,
        normalized_avg_rating: Optional[int] = None,
    ) -> Application:
        """
        Create an applicant user plus their application and reviews.

        The user's application_status mirrors ``status``; review_count and
        average_rating are derived from ``ratings``.
        """
        n = self._next()
        name = name or f"Applicant{n} Person"
        first_name, _, last_name = name.partition(" ")
        ratings = ratings or []

        user = User(
            id=f"user-{n:03d}",
            name=name,
            email=f"applicant{n}@example.com",
            role=UserRole.HACKER,
            application_status=UserApplicationStatus(status.value),
        )
        average = None
        if ratings:
            mean = Decimal(sum(r for _, r in ratings)) * 100 / len(ratings)
            average = int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        application = Application(
            id=f"app-{n:03d}",
            user_id=user.id,
            first_name=first_name,
            last_name=last_name,
            email=user.email,
            submission_status=SubmissionStatus.SUBMITTED if submitted else SubmissionStatus.DRAFT,
            internal_result=status,
            review_count=len(ratings),
            average_rating=average,
            normalized_avg_rating=normalized_avg_rating,
            created_at=self._created_at + timedelta(minutes=n),
        )
        reviews = [
            ApplicationReview(
                id=f"review-{n:03d}-{i:02d}",
                application_id=application.id,
                reviewer_id=reviewer.id,
                rating=rating,
            )
            for i, (reviewer, rating) in enumerate(ratings)
        ]

        async with self.session_factory() as session:
            session.add(user)
            session.add(application)
            session.add_all(reviews)
            await session.commit()
        return application
