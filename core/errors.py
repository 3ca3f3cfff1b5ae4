"""
Exceptions raised by the review decision engine.

Degenerate statistics (no reviews, zero variance) are never raised; they are
resolved with fallbacks where they occur. Stale ids in a bulk action are
dropped silently and never surface here either.
"""

from typing import Any


class ReviewEngineError(Exception):
    """Base class for review engine errors."""

    code = "REVIEW_ENGINE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ReviewValidationError(ReviewEngineError):
    """Input rejected before any query executes."""

    code = "INVALID_INPUT"


class BulkTransactionError(ReviewEngineError):
    """The atomic status update failed and nothing was committed."""

    code = "TRANSACTION_FAILED"


class NotificationDeliveryError(ReviewEngineError):
    """A single notification could not be delivered."""

    code = "NOTIFICATION_FAILED"

    def __init__(self, recipient: str, reason: str):
        super().__init__(f"Failed to notify {recipient}: {reason}")
        self.recipient = recipient
        self.reason = reason


class NormalizationInProgressError(ReviewEngineError):
    """Another normalization run holds the single-flight lock."""

    code = "NORMALIZATION_IN_PROGRESS"
