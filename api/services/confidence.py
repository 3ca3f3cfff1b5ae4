"""
Confidence scoring for applications.

Confidence is computed on demand from an application's own raw ratings and
never persisted. Every caller (single lookup, criteria preview, decision
queue sorting) goes through calculate_confidence so they agree at any
instant.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from statistics import stdev
from typing import Iterable, Optional, Sequence
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from database.models.applications import ApplicationReview

logger = logging.getLogger(__name__)

# Fixed stand-in for reviewer reliability; not derived from the actual reviewers
RELIABILITY_TERM = 0.7
# Rating spread at which agreement reaches zero
AGREEMENT_SPREAD = 5.0


def calculate_confidence(
    ratings: Sequence[int],
    max_reviews: Optional[int] = None,
    weights: Optional[tuple[float, float, float]] = None,
) -> int:
    """
    Score how much an application's average can be trusted, 0-100.

    Args:
        ratings: Raw ratings the application received
        max_reviews: Review count at which coverage saturates
        weights: (coverage, agreement, reliability) weights summing to 1.0

    Returns:
        Integer confidence; 0 when there are no ratings
    """
    if not ratings:
        return 0

    max_reviews = settings.max_reviews_for_confidence if max_reviews is None else max_reviews
    w_coverage, w_agreement, w_reliability = (
        settings.confidence_weights if weights is None else weights
    )

    coverage = min(len(ratings) / max_reviews, 1.0)
    spread = stdev(ratings) if len(ratings) > 1 else 0.0
    agreement = max(1.0 - (spread / AGREEMENT_SPREAD), 0.0)

    score = (
        coverage * w_coverage
        + agreement * w_agreement
        + RELIABILITY_TERM * w_reliability
    ) * 100
    # Trim float noise (94.00000000000001) before rounding halves up
    rounded = Decimal(str(round(score, 9))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(rounded)))


async def _ratings_by_application(
    session: AsyncSession,
    application_ids: Optional[Iterable[str]] = None,
) -> dict[str, list[int]]:
    query = select(ApplicationReview.application_id, ApplicationReview.rating)
    if application_ids is not None:
        query = query.where(ApplicationReview.application_id.in_(list(application_ids)))
    result = await session.execute(query)

    ratings: dict[str, list[int]] = defaultdict(list)
    for application_id, rating in result.all():
        ratings[application_id].append(rating)
    return ratings


async def compute_confidence(session: AsyncSession, application_id: str) -> int:
    """Confidence for a single application from its current reviews."""
    ratings = await _ratings_by_application(session, [application_id])
    return calculate_confidence(ratings.get(application_id, []))


async def compute_confidences(
    session: AsyncSession,
    application_ids: Optional[Iterable[str]] = None,
) -> dict[str, int]:
    """
    Confidence for many applications with a single query.

    Args:
        session: Database session
        application_ids: Applications to score; None scores every reviewed
            application

    Returns:
        Mapping of application id to confidence. Requested applications
        without reviews map to 0.
    """
    ids = None if application_ids is None else list(application_ids)
    if ids is not None and not ids:
        return {}

    ratings = await _ratings_by_application(session, ids)
    keys = ids if ids is not None else list(ratings)
    return {app_id: calculate_confidence(ratings.get(app_id, [])) for app_id in keys}
