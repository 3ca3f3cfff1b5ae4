"""
API Services Layer.

Database operations behind the review endpoints and worker tasks.
"""

from api.services.review_stats import (
    aggregate_statistics,
    calculate_reviewer_adjustments,
    get_reviewer_stats,
)

from api.services.normalization import (
    adjust_rating,
    normalize_ratings,
)

from api.services.confidence import (
    calculate_confidence,
    compute_confidence,
    compute_confidences,
)

from api.services.criteria import (
    get_status_counts,
    preview_criteria,
)

from api.services.bulk import (
    apply_bulk_status,
)

from api.services.reviewer_analytics import (
    get_reviewer_analytics,
)

from api.services.decisions import (
    list_decisions,
)

__all__ = [
    # Statistics and bias model
    "aggregate_statistics",
    "calculate_reviewer_adjustments",
    "get_reviewer_stats",
    # Normalization
    "adjust_rating",
    "normalize_ratings",
    # Confidence
    "calculate_confidence",
    "compute_confidence",
    "compute_confidences",
    # Criteria
    "get_status_counts",
    "preview_criteria",
    # Bulk decisions
    "apply_bulk_status",
    # Dashboard
    "get_reviewer_analytics",
    "list_decisions",
]
