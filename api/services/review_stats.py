"""
Reviewer statistics and bias model.

Builds the per-run GlobalStatistics / ReviewerStatistics value objects that
feed rating normalization. Everything here is rebuilt from raw ratings on
every call and never persisted.
"""

from collections import defaultdict
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from statistics import mean, stdev
from typing import Iterable, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from database.models.applications import ApplicationReview

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def round_half_up(value: float | Decimal, places: Decimal = TWO_PLACES) -> Decimal:
    """Round like SQL ROUND(numeric): halves go away from zero."""
    return Decimal(str(value)).quantize(places, rounding=ROUND_HALF_UP)


def round2(value: float | Decimal) -> float:
    return float(round_half_up(value))


@dataclass(frozen=True)
class GlobalStatistics:
    avg_rating: float
    std_dev: float
    review_count: int = 0


@dataclass(frozen=True)
class ReviewerStatistics:
    """Descriptive stats for one qualifying reviewer plus their correction."""

    reviewer_id: str
    avg_rating: float
    std_dev: float
    review_count: int
    z_score: float = 0.0
    reliability_weight: float = 0.0
    adjustment: float = 0.0

    def to_dict(self) -> dict:
        return {
            "reviewer_id": self.reviewer_id,
            "avg_rating": self.avg_rating,
            "std_dev": self.std_dev,
            "review_count": self.review_count,
            "z_score": self.z_score,
            "reliability_weight": self.reliability_weight,
            "adjustment": self.adjustment,
        }


def _sample_std_dev(ratings: list[int]) -> Optional[float]:
    # Undefined for fewer than two samples
    if len(ratings) < 2:
        return None
    return stdev(ratings)


def aggregate_statistics(
    ratings: Iterable[tuple[str, int]],
    min_reviews: Optional[int] = None,
    target_avg: Optional[float] = None,
) -> tuple[GlobalStatistics, list[ReviewerStatistics]]:
    """
    Compute global and per-reviewer descriptive statistics.

    Args:
        ratings: (reviewer_id, rating) pairs for every review
        min_reviews: Reviews a reviewer needs before they get a stats row
        target_avg: Global average reported when there are no reviews

    Returns:
        The global statistics and one row per qualifying reviewer, ordered
        by reviewer id. Correction fields are left at zero.
    """
    min_reviews = settings.min_reviews_threshold if min_reviews is None else min_reviews
    target_avg = settings.target_avg if target_avg is None else target_avg

    by_reviewer: dict[str, list[int]] = defaultdict(list)
    all_ratings: list[int] = []
    for reviewer_id, rating in ratings:
        by_reviewer[reviewer_id].append(rating)
        all_ratings.append(rating)

    if all_ratings:
        global_avg = round2(mean(all_ratings))
        global_std = _sample_std_dev(all_ratings)
        global_std = round2(global_std) if global_std is not None else 0.0
    else:
        global_avg = target_avg
        global_std = 0.0

    global_stats = GlobalStatistics(
        avg_rating=global_avg,
        # Zero or undefined spread falls back to 1 so z-scores stay finite
        std_dev=global_std or 1.0,
        review_count=len(all_ratings),
    )

    reviewer_stats = []
    for reviewer_id in sorted(by_reviewer):
        reviewer_ratings = by_reviewer[reviewer_id]
        if len(reviewer_ratings) < min_reviews:
            continue
        std = _sample_std_dev(reviewer_ratings)
        reviewer_stats.append(
            ReviewerStatistics(
                reviewer_id=reviewer_id,
                avg_rating=round2(mean(reviewer_ratings)),
                std_dev=round2(std) if std is not None else 0.0,
                review_count=len(reviewer_ratings),
            )
        )

    return global_stats, reviewer_stats


def calculate_reviewer_adjustments(
    reviewer_stats: Iterable[ReviewerStatistics],
    global_stats: GlobalStatistics,
    target_avg: Optional[float] = None,
    min_reviews: Optional[int] = None,
) -> list[ReviewerStatistics]:
    """
    Attach z-score, reliability weight and additive adjustment to each reviewer.

    The weight shrinks as a reviewer's average drifts from the global mean
    and grows with review count, capped at 1.0.
    """
    target_avg = settings.target_avg if target_avg is None else target_avg
    min_reviews = settings.min_reviews_threshold if min_reviews is None else min_reviews

    adjusted = []
    for reviewer in reviewer_stats:
        z_score = (reviewer.avg_rating - global_stats.avg_rating) / (global_stats.std_dev or 1)
        reliability_weight = min(
            1.0,
            (reviewer.review_count / min_reviews) * (1 / (1 + abs(z_score))),
        )
        adjustment = (target_avg - reviewer.avg_rating) * reliability_weight
        adjusted.append(
            replace(
                reviewer,
                z_score=z_score,
                reliability_weight=reliability_weight,
                adjustment=adjustment,
            )
        )
    return adjusted


async def fetch_ratings(session: AsyncSession) -> list[tuple[str, int]]:
    """Load (reviewer_id, rating) for every review."""
    result = await session.execute(
        select(ApplicationReview.reviewer_id, ApplicationReview.rating)
    )
    return [(reviewer_id, rating) for reviewer_id, rating in result.all()]


async def get_reviewer_stats(
    session: AsyncSession,
) -> tuple[GlobalStatistics, list[ReviewerStatistics]]:
    """Aggregate statistics from the current review table and apply the bias model."""
    ratings = await fetch_ratings(session)
    global_stats, reviewer_stats = aggregate_statistics(ratings)
    reviewer_stats = calculate_reviewer_adjustments(reviewer_stats, global_stats)
    logger.debug(
        f"Aggregated {global_stats.review_count} reviews: "
        f"global avg={global_stats.avg_rating}, std={global_stats.std_dev}, "
        f"{len(reviewer_stats)} qualifying reviewers"
    )
    return global_stats, reviewer_stats
