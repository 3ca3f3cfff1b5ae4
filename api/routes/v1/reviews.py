"""Review normalization and decision endpoints."""

import logging
from typing import Literal
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import redis_cache, NORMALIZATION_LOCK
from database.engine import get_db
from api.schemas.common import PaginationParams
from api.schemas.reviews import (
    BulkStatusRequest,
    BulkStatusResponse,
    ConfidenceResponse,
    CriteriaFilter,
    CriteriaPreviewResponse,
    DecisionQueueResponse,
    DecisionSortField,
    NormalizationResponse,
    ReviewerAnalyticsResponse,
)
from api.services.bulk import apply_bulk_status
from api.services.confidence import compute_confidence
from api.services.criteria import preview_criteria
from api.services.decisions import list_decisions
from api.services.normalization import normalize_ratings
from api.services.reviewer_analytics import get_reviewer_analytics

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/normalize",
    response_model=NormalizationResponse,
    summary="Run rating normalization",
    description="Recompute every adjusted rating and normalized applicant average",
)
async def run_normalization(
    db: AsyncSession = Depends(get_db),
) -> NormalizationResponse:
    """
    Full recompute of reviewer bias corrections.

    Only one run may be in flight; a concurrent trigger gets 409.
    """
    async with redis_cache.single_flight(NORMALIZATION_LOCK):
        result = await normalize_ratings(db)

    return NormalizationResponse(message=result.message, **result.to_dict())


@router.get(
    "/applications/{application_id}/confidence",
    response_model=ConfidenceResponse,
    summary="Get application confidence",
)
async def get_application_confidence(
    application_id: str,
    db: AsyncSession = Depends(get_db),
) -> ConfidenceResponse:
    """Confidence (0-100) in an application's average; 0 when it has no reviews."""
    confidence = await compute_confidence(db, application_id)
    return ConfidenceResponse(application_id=application_id, confidence=confidence)


@router.post(
    "/criteria-preview",
    response_model=CriteriaPreviewResponse,
    summary="Preview a criteria-based bulk decision",
    description="Read-only: shows which applicants match and the resulting status counts",
)
async def criteria_preview(
    criteria: CriteriaFilter,
    db: AsyncSession = Depends(get_db),
) -> CriteriaPreviewResponse:
    """
    - **min_rating** / **max_rating**: Normalized average bounds (0-10)
    - **min_confidence** / **max_confidence**: Confidence bounds (0-100)
    - **min_review_count**: Minimum number of reviews
    - **current_statuses**: pending and/or waitlisted (empty means both)
    - **target_action**: accepted, rejected or waitlisted
    """
    return await preview_criteria(db, criteria)


@router.post(
    "/bulk-status",
    response_model=BulkStatusResponse,
    summary="Apply a decision to many applicants",
)
async def bulk_status(
    request: BulkStatusRequest,
    db: AsyncSession = Depends(get_db),
) -> BulkStatusResponse:
    """
    Apply one decision status to a batch of users.

    Users that are no longer pending or waitlisted are skipped. Accepted and
    rejected users are emailed after the change commits.
    """
    logger.info(
        f"Bulk status '{request.status}' requested for {len(request.user_ids)} users",
        extra={"actor_id": request.actor_id},
    )
    result = await apply_bulk_status(
        db,
        request.user_ids,
        request.status,
        actor_id=request.actor_id,
        actor_email=request.actor_email,
    )
    return BulkStatusResponse(**result.to_dict())


@router.get(
    "/reviewers/analytics",
    response_model=ReviewerAnalyticsResponse,
    summary="Reviewer bias report",
)
async def reviewer_analytics(
    db: AsyncSession = Depends(get_db),
) -> ReviewerAnalyticsResponse:
    return await get_reviewer_analytics(db)


@router.get(
    "/decisions",
    response_model=DecisionQueueResponse,
    summary="List the decision queue",
)
async def decision_queue(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort: DecisionSortField = Query("normalized_avg_rating"),
    order: Literal["asc", "desc"] = Query("desc"),
    db: AsyncSession = Depends(get_db),
) -> DecisionQueueResponse:
    """Submitted applications with confidence, sortable by any rating column."""
    pagination = PaginationParams(page=page, page_size=page_size)
    return await list_decisions(db, pagination, sort=sort, order=order)
