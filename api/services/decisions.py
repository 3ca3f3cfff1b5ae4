"""
Decision queue service.

Lists submitted applications for the admin decision screen, with
confidence computed on the fly.
"""

from typing import Literal
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import PaginationParams
from api.schemas.reviews import DecisionQueueItem, DecisionQueueResponse, DecisionSortField
from api.services.confidence import compute_confidences
from api.services.criteria import get_status_counts
from database.models.applications import Application, SubmissionStatus

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "review_count": Application.review_count,
    "average_rating": Application.average_rating,
    "normalized_avg_rating": Application.normalized_avg_rating,
    "internal_result": Application.internal_result,
}


def _submitted():
    return select(Application).where(Application.submission_status == SubmissionStatus.SUBMITTED)


async def _page_sorted_by_confidence(
    session: AsyncSession,
    pagination: PaginationParams,
    descending: bool,
) -> tuple[list[Application], dict[str, int]]:
    # Confidence is never stored, so the whole queue is scored before slicing
    result = await session.execute(
        select(Application.id)
        .where(Application.submission_status == SubmissionStatus.SUBMITTED)
        .order_by(Application.id)
    )
    ids = list(result.scalars().all())
    confidences = await compute_confidences(session, ids)

    ids.sort(key=lambda app_id: confidences[app_id], reverse=descending)
    page_ids = ids[pagination.offset:pagination.offset + pagination.page_size]
    if not page_ids:
        return [], {}

    result = await session.execute(_submitted().where(Application.id.in_(page_ids)))
    by_id = {app.id: app for app in result.scalars().all()}
    return [by_id[app_id] for app_id in page_ids], confidences


async def list_decisions(
    session: AsyncSession,
    pagination: PaginationParams,
    sort: DecisionSortField = "normalized_avg_rating",
    order: Literal["asc", "desc"] = "desc",
) -> DecisionQueueResponse:
    """
    Page through submitted applications.

    Args:
        session: Database session
        pagination: Page and page size
        sort: Column to order by; ``confidence`` is computed per request
        order: asc or desc. Null ratings always sort last.

    Returns:
        DecisionQueueResponse with the page, status counts over all submitted
        applications, and the most recent normalization time
    """
    descending = order == "desc"

    total = (
        await session.execute(
            select(func.count(Application.id)).where(
                Application.submission_status == SubmissionStatus.SUBMITTED
            )
        )
    ).scalar_one()

    if sort == "confidence":
        applications, confidences = await _page_sorted_by_confidence(
            session, pagination, descending
        )
    else:
        column = SORT_COLUMNS[sort]
        ordering = column.desc() if descending else column.asc()
        result = await session.execute(
            _submitted()
            .order_by(ordering.nulls_last(), Application.id)
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        applications = list(result.scalars().all())
        confidences = await compute_confidences(session, [app.id for app in applications])

    items = [
        DecisionQueueItem(
            id=app.id,
            user_id=app.user_id,
            first_name=app.first_name,
            last_name=app.last_name,
            email=app.email,
            review_count=app.review_count,
            average_rating=app.average_rating,
            normalized_avg_rating=app.normalized_avg_rating,
            internal_result=app.internal_result.value,
            confidence=confidences.get(app.id, 0),
            last_normalized_at=app.last_normalized_at,
        )
        for app in applications
    ]

    last_normalized_at = (
        await session.execute(select(func.max(Application.last_normalized_at)))
    ).scalar_one_or_none()

    logger.debug(f"Decision queue page {pagination.page} sorted by {sort} {order}")

    return DecisionQueueResponse.create(
        items,
        total,
        pagination,
        status_counts=await get_status_counts(session),
        last_normalized_at=last_normalized_at,
    )
