from database.models.users import User, UserRole, UserApplicationStatus
from database.models.applications import (
    Application,
    ApplicationReview,
    InternalResult,
    SubmissionStatus,
)
from database.models.audit import AuditLog, AuditAction, AuditEntityType

__all__ = [
    "User",
    "UserRole",
    "UserApplicationStatus",
    "Application",
    "ApplicationReview",
    "InternalResult",
    "SubmissionStatus",
    "AuditLog",
    "AuditAction",
    "AuditEntityType",
]
