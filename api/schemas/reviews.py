"""Review engine API schemas."""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from api.schemas.common import PaginatedResponse
from core.config import settings

# Type aliases for decision statuses
OpenStatusType = Literal["pending", "waitlisted"]
TargetStatusType = Literal["accepted", "rejected", "waitlisted"]

VALID_CURRENT_STATUSES: tuple[str, ...] = ("pending", "waitlisted")
VALID_TARGET_STATUSES: tuple[str, ...] = ("accepted", "rejected", "waitlisted")

DecisionSortField = Literal[
    "review_count",
    "average_rating",
    "normalized_avg_rating",
    "confidence",
    "internal_result",
]


class ReviewerStatisticsResponse(BaseModel):
    """Per-reviewer statistics and correction from one normalization run."""

    reviewer_id: str
    avg_rating: float
    std_dev: float
    review_count: int
    z_score: float
    reliability_weight: float
    adjustment: float


class NormalizationResponse(BaseModel):
    """Schema for a normalization run result."""

    message: str
    global_avg: float
    global_std_dev: float
    reviewers_processed: int
    applications_updated: int
    reviewer_stats: list[ReviewerStatisticsResponse] = Field(default_factory=list)
    normalized_at: Optional[datetime] = None


class ConfidenceResponse(BaseModel):
    """Confidence score for one application."""

    application_id: str
    confidence: int = Field(..., ge=0, le=100)


class CriteriaFilter(BaseModel):
    """
    Eligibility criteria for a bulk decision preview.

    Rating bounds are on the 0-10 scale and confidence bounds on 0-100.
    Bounds left at their full range are not applied.
    """

    model_config = ConfigDict(extra="forbid")

    min_rating: float = Field(default=0, ge=0, le=10)
    max_rating: float = Field(default=10, ge=0, le=10)
    min_confidence: int = Field(default=0, ge=0, le=100)
    max_confidence: int = Field(default=100, ge=0, le=100)
    min_review_count: Optional[int] = Field(default=None, ge=0)
    current_statuses: list[OpenStatusType] = Field(
        default_factory=lambda: list(VALID_CURRENT_STATUSES),
        description="Statuses eligible for the change; empty means pending and waitlisted",
    )
    target_action: TargetStatusType

    @field_validator("current_statuses")
    @classmethod
    def default_and_dedupe_statuses(cls, v: list[str]) -> list[str]:
        """Empty means both open statuses; keep first-seen order otherwise."""
        if not v:
            return list(VALID_CURRENT_STATUSES)
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_bounds(self) -> "CriteriaFilter":
        """Ensure lower bounds do not exceed upper bounds."""
        if self.min_rating > self.max_rating:
            raise ValueError("min_rating cannot exceed max_rating")
        if self.min_confidence > self.max_confidence:
            raise ValueError("min_confidence cannot exceed max_confidence")
        return self

    @property
    def rating_bounds_active(self) -> bool:
        return self.min_rating > 0 or self.max_rating < 10

    @property
    def confidence_bounds_active(self) -> bool:
        return self.min_confidence > 0 or self.max_confidence < 100


class StatusCounts(BaseModel):
    """Submitted applications per internal result."""

    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    waitlisted: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.accepted + self.rejected + self.waitlisted + self.cancelled


class PreviewApplicant(BaseModel):
    first_name: str
    last_name: str
    email: str


class CriteriaPreviewResponse(BaseModel):
    """Read-only projection of a criteria-driven bulk decision."""

    message: str
    matching_count: int
    matching_user_ids: list[str]
    preview: list[PreviewApplicant]
    current_counts: StatusCounts
    projected_counts: StatusCounts


class BulkStatusRequest(BaseModel):
    """Schema for an approved bulk status change."""

    user_ids: list[str] = Field(..., min_length=1, description="Users to update")
    status: TargetStatusType = Field(..., description="Target decision status")
    actor_id: str = Field(..., min_length=1, description="Operator applying the change")
    actor_email: Optional[str] = Field(None, description="Operator email for the audit trail")

    @field_validator("user_ids")
    @classmethod
    def validate_batch_size(cls, v: list[str]) -> list[str]:
        """Enforce the configured batch ceiling and drop duplicate ids."""
        unique_ids = list(dict.fromkeys(v))
        if len(unique_ids) > settings.max_bulk_batch:
            raise ValueError(
                f"Maximum {settings.max_bulk_batch} users per request"
            )
        return unique_ids


class BulkStatusResponse(BaseModel):
    """Outcome of a bulk status change."""

    success: bool
    message: str
    success_count: int
    failure_count: int
    total: int


class ReviewerAnalyticsRow(BaseModel):
    reviewer_id: str
    reviewer_name: str
    review_count: int
    raw_avg_rating: float
    bias: float
    std_dev: float
    normalized_shift: float
    reliability_score: float


class ReviewerSummary(BaseModel):
    name: str
    avg: float


class ReviewerAnalyticsResponse(BaseModel):
    """Reviewer bias report."""

    reviewers: list[ReviewerAnalyticsRow]
    global_avg: float
    global_std_dev: float
    harshest_reviewer: Optional[ReviewerSummary] = None
    most_lenient_reviewer: Optional[ReviewerSummary] = None
    avg_bias: float
    agreement_rate: float


class DecisionQueueItem(BaseModel):
    """One submitted application in the decision queue."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    review_count: int
    average_rating: Optional[int] = None
    normalized_avg_rating: Optional[int] = None
    internal_result: str
    confidence: int
    last_normalized_at: Optional[datetime] = None


class DecisionQueueResponse(PaginatedResponse[DecisionQueueItem]):
    """One page of the decision queue plus dashboard summary."""

    status_counts: StatusCounts = Field(default_factory=StatusCounts)
    last_normalized_at: Optional[datetime] = None
