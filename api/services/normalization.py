"""
Rating normalization service.

Full recompute of every review's adjusted rating and every reviewed
application's normalized average. Adjusted ratings are always derived from
raw ratings, so running it again with no new reviews reproduces the same
values. Callers must not run two normalizations at once (see
core.cache.RedisCache.single_flight).
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from database.models.applications import Application, ApplicationReview
from api.services.review_stats import (
    GlobalStatistics,
    ReviewerStatistics,
    aggregate_statistics,
    calculate_reviewer_adjustments,
    round_half_up,
)

logger = logging.getLogger(__name__)

MIN_RATING = Decimal("0")
MAX_RATING = Decimal("10")


@dataclass
class NormalizationResult:
    global_avg: float
    global_std_dev: float
    reviewers_processed: int
    applications_updated: int
    reviewer_stats: list[ReviewerStatistics] = field(default_factory=list)
    normalized_at: Optional[datetime] = None

    @property
    def message(self) -> str:
        return (
            f"Normalization complete. Processed {self.reviewers_processed} reviewers "
            f"and updated {self.applications_updated} applications."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "global_avg": self.global_avg,
            "global_std_dev": self.global_std_dev,
            "reviewers_processed": self.reviewers_processed,
            "applications_updated": self.applications_updated,
            "reviewer_stats": [r.to_dict() for r in self.reviewer_stats],
            "normalized_at": self.normalized_at,
        }


def adjust_rating(
    rating: int,
    reviewer: Optional[ReviewerStatistics],
    zscore_threshold: Optional[float] = None,
) -> Decimal:
    """
    Bias-correct a single raw rating.

    Ratings from reviewers without statistics pass through unchanged.
    A rating more than ``zscore_threshold`` standard deviations from the
    reviewer's own mean collapses to that mean; anything else is shifted by
    the reviewer's adjustment. The result is clamped to [0, 10] and rounded
    to 2 decimals.
    """
    if reviewer is None:
        return round_half_up(rating)

    zscore_threshold = settings.zscore_threshold if zscore_threshold is None else zscore_threshold

    deviation = abs(rating - reviewer.avg_rating) / (reviewer.std_dev or 1)
    if deviation > zscore_threshold:
        value = round_half_up(reviewer.avg_rating)
    else:
        value = round_half_up(rating + reviewer.adjustment)
    return min(MAX_RATING, max(MIN_RATING, value))


def normalized_average(adjusted_ratings: list[Decimal]) -> int:
    """Mean adjusted rating on the x100 integer scale."""
    total = sum(adjusted_ratings, Decimal("0"))
    scaled = total * 100 / len(adjusted_ratings)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_normalization(
    reviews: list[tuple[str, str, str, int]],
    global_stats: GlobalStatistics,
    reviewer_stats: list[ReviewerStatistics],
    zscore_threshold: Optional[float] = None,
) -> tuple[dict[str, Decimal], dict[str, int]]:
    """
    Compute adjusted ratings and per-application normalized averages.

    Args:
        reviews: (review_id, application_id, reviewer_id, rating) rows
        global_stats: Statistics for the whole review population
        reviewer_stats: Qualifying reviewers with their corrections applied

    Returns:
        (adjusted rating by review id, normalized average by application id)
    """
    stats_by_reviewer = {r.reviewer_id: r for r in reviewer_stats}

    adjusted_by_review: dict[str, Decimal] = {}
    adjusted_by_application: dict[str, list[Decimal]] = defaultdict(list)
    for review_id, application_id, reviewer_id, rating in reviews:
        adjusted = adjust_rating(
            rating,
            stats_by_reviewer.get(reviewer_id),
            zscore_threshold=zscore_threshold,
        )
        adjusted_by_review[review_id] = adjusted
        adjusted_by_application[application_id].append(adjusted)

    normalized_by_application = {
        application_id: normalized_average(values)
        for application_id, values in adjusted_by_application.items()
    }
    return adjusted_by_review, normalized_by_application


async def normalize_ratings(session: AsyncSession) -> NormalizationResult:
    """
    Recompute adjusted ratings and normalized averages for the whole store.

    Statistics are read and every write is applied inside a single
    transaction, so a failure leaves the previous run's values in place.
    Applications without reviews are not touched.

    Args:
        session: Session with no transaction in progress

    Returns:
        NormalizationResult summarizing the run
    """
    async with session.begin():
        result = await session.execute(
            select(
                ApplicationReview.id,
                ApplicationReview.application_id,
                ApplicationReview.reviewer_id,
                ApplicationReview.rating,
            ).order_by(ApplicationReview.id)
        )
        reviews = [tuple(row) for row in result.all()]

        global_stats, reviewer_stats = aggregate_statistics(
            (reviewer_id, rating) for _, _, reviewer_id, rating in reviews
        )
        reviewer_stats = calculate_reviewer_adjustments(reviewer_stats, global_stats)

        for reviewer in reviewer_stats:
            logger.debug(
                f"Reviewer {reviewer.reviewer_id}: avg={reviewer.avg_rating}, "
                f"reviews={reviewer.review_count}, adjustment={reviewer.adjustment:.2f}"
            )

        adjusted_by_review, normalized_by_application = compute_normalization(
            reviews, global_stats, reviewer_stats
        )

        normalized_at = datetime.now(timezone.utc)

        if adjusted_by_review:
            await session.execute(
                update(ApplicationReview),
                [
                    {"id": review_id, "adjusted_rating": adjusted}
                    for review_id, adjusted in adjusted_by_review.items()
                ],
            )

        if normalized_by_application:
            await session.execute(
                update(Application),
                [
                    {
                        "id": application_id,
                        "normalized_avg_rating": normalized,
                        "last_normalized_at": normalized_at,
                    }
                    for application_id, normalized in normalized_by_application.items()
                ],
            )

    normalization = NormalizationResult(
        global_avg=global_stats.avg_rating,
        global_std_dev=global_stats.std_dev,
        reviewers_processed=len(reviewer_stats),
        applications_updated=len(normalized_by_application),
        reviewer_stats=reviewer_stats,
        normalized_at=normalized_at,
    )
    logger.info(
        f"{normalization.message} Global avg={normalization.global_avg}, "
        f"std={normalization.global_std_dev}"
    )
    return normalization
