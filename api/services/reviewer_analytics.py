"""
Reviewer bias report.

Read-only view over the same statistics normalization uses, plus how far
normalization actually moved each reviewer's ratings and how often
reviewers agree on an application.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.reviews import (
    ReviewerAnalyticsResponse,
    ReviewerAnalyticsRow,
    ReviewerSummary,
)
from api.services.review_stats import get_reviewer_stats, round2
from database.models.applications import ApplicationReview
from database.models.users import User

logger = logging.getLogger(__name__)

# Max - min rating on one application at or under which reviewers "agree"
AGREEMENT_MAX_SPREAD = 2


async def get_agreement_rate(session: AsyncSession) -> float:
    """Percentage of multi-review applications whose rating spread is within AGREEMENT_MAX_SPREAD."""
    result = await session.execute(
        select(func.max(ApplicationReview.rating) - func.min(ApplicationReview.rating))
        .group_by(ApplicationReview.application_id)
        .having(func.count(ApplicationReview.id) >= 2)
    )
    spreads = result.scalars().all()
    if not spreads:
        return 0.0
    agreeing = sum(1 for spread in spreads if spread <= AGREEMENT_MAX_SPREAD)
    return float(round(agreeing / len(spreads) * 100, 1))


async def get_reviewer_analytics(session: AsyncSession) -> ReviewerAnalyticsResponse:
    """
    Build the reviewer bias report.

    Only reviewers with at least MIN_REVIEWS_THRESHOLD reviews are listed,
    busiest first.
    """
    global_stats, reviewer_stats = await get_reviewer_stats(session)
    if not reviewer_stats:
        return ReviewerAnalyticsResponse(
            reviewers=[],
            global_avg=global_stats.avg_rating,
            global_std_dev=global_stats.std_dev,
            avg_bias=0.0,
            agreement_rate=await get_agreement_rate(session),
        )

    result = await session.execute(
        select(
            ApplicationReview.reviewer_id,
            User.name,
            func.avg(ApplicationReview.adjusted_rating),
        )
        .join(User, User.id == ApplicationReview.reviewer_id)
        .where(ApplicationReview.reviewer_id.in_([r.reviewer_id for r in reviewer_stats]))
        .group_by(ApplicationReview.reviewer_id, User.name)
    )
    details = {reviewer_id: (name, adjusted_avg) for reviewer_id, name, adjusted_avg in result.all()}

    rows = []
    for reviewer in reviewer_stats:
        name, adjusted_avg = details.get(reviewer.reviewer_id, ("", None))
        # Never normalized yet means no shift
        shift = round2(adjusted_avg) - reviewer.avg_rating if adjusted_avg is not None else 0.0
        rows.append(
            ReviewerAnalyticsRow(
                reviewer_id=reviewer.reviewer_id,
                reviewer_name=name,
                review_count=reviewer.review_count,
                raw_avg_rating=reviewer.avg_rating,
                bias=round2(reviewer.avg_rating - global_stats.avg_rating),
                std_dev=reviewer.std_dev,
                normalized_shift=round2(shift),
                reliability_score=round2(reviewer.reliability_weight),
            )
        )
    rows.sort(key=lambda r: (-r.review_count, r.reviewer_id))

    harshest = min(rows, key=lambda r: r.raw_avg_rating)
    lenient = max(rows, key=lambda r: r.raw_avg_rating)
    avg_bias = sum(abs(r.bias) for r in rows) / len(rows)

    logger.debug(f"Reviewer analytics built for {len(rows)} reviewers")

    return ReviewerAnalyticsResponse(
        reviewers=rows,
        global_avg=global_stats.avg_rating,
        global_std_dev=global_stats.std_dev,
        harshest_reviewer=ReviewerSummary(name=harshest.reviewer_name, avg=harshest.raw_avg_rating),
        most_lenient_reviewer=ReviewerSummary(name=lenient.reviewer_name, avg=lenient.raw_avg_rating),
        avg_bias=round2(avg_bias),
        agreement_rate=await get_agreement_rate(session),
    )
