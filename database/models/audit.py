from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    func,
    JSON,
    Text,
    Enum as SQLEnum,
)
from database.engine import Base
from database.models.users import enum_values, new_uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ============ Audit Enums ============ #
class AuditAction(str, PyEnum):
    """Audit action types."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditEntityType(str, PyEnum):
    """Entities that appear in the audit trail."""

    BULK_STATUS_UPDATE = "bulk-status-update"
    APPLICATION = "application"
    USER = "user"


# ==================== Models ===================== #
class AuditLog(Base):
    """
    Audit trail entry. Bulk decisions write exactly one row per batch.
    """

    __tablename__ = "audit_logs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    # Actor
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Action
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, native_enum=False, length=50, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[AuditEntityType] = mapped_column(
        SQLEnum(
            AuditEntityType,
            native_enum=False,
            length=50,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )
    # Comma-joined ids when the entry covers a batch
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Details
    previous_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
