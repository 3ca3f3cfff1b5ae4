"""
Criteria matching for bulk decisions.

Selects the applications a criteria-driven bulk decision would touch and
projects the resulting status counts. Purely read-only.
"""

from decimal import Decimal
from typing import Any
import logging

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.reviews import (
    CriteriaFilter,
    CriteriaPreviewResponse,
    PreviewApplicant,
    StatusCounts,
)
from api.services.confidence import compute_confidences
from api.services.review_stats import round_half_up
from core.errors import ReviewValidationError
from database.models.applications import Application, InternalResult, SubmissionStatus

logger = logging.getLogger(__name__)

PREVIEW_SIZE = 5


def _scaled(rating: float) -> int:
    return int(round_half_up(rating * 100, Decimal("1")))


def parse_criteria(criteria: CriteriaFilter | dict[str, Any]) -> CriteriaFilter:
    """Validate raw criteria, raising ReviewValidationError when malformed."""
    if isinstance(criteria, CriteriaFilter):
        return criteria
    try:
        return CriteriaFilter.model_validate(criteria)
    except ValidationError as e:
        raise ReviewValidationError(
            "Invalid criteria provided.",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


async def get_status_counts(session: AsyncSession) -> StatusCounts:
    """Histogram of internal results over every submitted application."""
    result = await session.execute(
        select(Application.internal_result, func.count(Application.id))
        .where(Application.submission_status == SubmissionStatus.SUBMITTED)
        .group_by(Application.internal_result)
    )
    counts = StatusCounts()
    for status, count in result.all():
        setattr(counts, InternalResult(status).value, count)
    return counts


def project_counts(
    current: StatusCounts,
    matched_statuses: list[InternalResult],
    target: str,
) -> StatusCounts:
    """Move each matched application one unit from its bucket to ``target``."""
    projected = current.model_copy()
    for status in matched_statuses:
        setattr(projected, status.value, getattr(projected, status.value) - 1)
        setattr(projected, target, getattr(projected, target) + 1)
    return projected


async def preview_criteria(
    session: AsyncSession,
    criteria: CriteriaFilter | dict[str, Any],
) -> CriteriaPreviewResponse:
    """
    Preview which applications match bulk decision criteria.

    Args:
        session: Database session (never written)
        criteria: Filter to evaluate; validated before any query runs

    Returns:
        Matching user ids, a short sample, and current/projected status counts
    """
    criteria = parse_criteria(criteria)
    statuses = [InternalResult(s) for s in criteria.current_statuses]

    query = (
        select(
            Application.id,
            Application.user_id,
            Application.first_name,
            Application.last_name,
            Application.email,
            Application.internal_result,
        )
        .where(Application.submission_status == SubmissionStatus.SUBMITTED)
        .where(Application.internal_result.in_(statuses))
        .order_by(Application.created_at, Application.id)
    )

    # normalized_avg_rating is stored on a 0-1000 scale (rating * 100)
    if criteria.rating_bounds_active:
        query = query.where(
            Application.normalized_avg_rating.between(
                _scaled(criteria.min_rating), _scaled(criteria.max_rating)
            )
        )
    if criteria.min_review_count is not None:
        query = query.where(Application.review_count >= criteria.min_review_count)

    result = await session.execute(query)
    rows = result.all()

    if criteria.confidence_bounds_active and rows:
        confidences = await compute_confidences(session, [row.id for row in rows])
        rows = [
            row
            for row in rows
            if criteria.min_confidence <= confidences[row.id] <= criteria.max_confidence
        ]

    current_counts = await get_status_counts(session)
    projected_counts = project_counts(
        current_counts,
        [InternalResult(row.internal_result) for row in rows],
        criteria.target_action,
    )

    matching_count = len(rows)
    logger.info(
        f"Criteria preview matched {matching_count} applications "
        f"for target '{criteria.target_action}'"
    )

    return CriteriaPreviewResponse(
        message=f"Found {matching_count} matching applications.",
        matching_count=matching_count,
        matching_user_ids=[row.user_id for row in rows],
        preview=[
            PreviewApplicant(
                first_name=row.first_name or "",
                last_name=row.last_name or "",
                email=row.email or "",
            )
            for row in rows[:PREVIEW_SIZE]
        ],
        current_counts=current_counts,
        projected_counts=projected_counts,
    )
