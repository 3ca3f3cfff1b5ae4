"""
Bulk decision service.

Applies one decision status to a batch of applicants atomically, writes a
single audit entry for the batch, then notifies each applicant once the
change has committed.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import asyncio
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.reviews import VALID_TARGET_STATUSES
from core.config import settings
from core.errors import BulkTransactionError, NotificationDeliveryError, ReviewValidationError
from core.integrations.email import NotificationSender, get_email_service
from database.models.applications import Application, InternalResult
from database.models.audit import AuditAction, AuditEntityType, AuditLog
from database.models.users import User, UserApplicationStatus

logger = logging.getLogger(__name__)

ELIGIBLE_STATUSES = (UserApplicationStatus.PENDING, UserApplicationStatus.WAITLISTED)
NOTIFIED_STATUSES = ("accepted", "rejected")


@dataclass
class BulkStatusResult:
    success: bool
    message: str
    success_count: int = 0
    failure_count: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total": self.total,
        }


def validate_bulk_request(user_ids: List[str], status: str) -> List[str]:
    """Reject malformed batches before touching the database; returns deduplicated ids."""
    if status not in VALID_TARGET_STATUSES:
        raise ReviewValidationError(
            f"Unknown target status '{status}'.",
            details={"allowed": list(VALID_TARGET_STATUSES)},
        )

    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        raise ReviewValidationError("At least one user id is required.")
    if len(unique_ids) > settings.max_bulk_batch:
        raise ReviewValidationError(
            f"Maximum {settings.max_bulk_batch} users per request.",
            details={"received": len(unique_ids)},
        )
    return unique_ids


def build_audit_entry(
    actor_id: str,
    actor_email: Optional[str],
    user_ids: List[str],
    previous_statuses: List[str],
    status: str,
) -> AuditLog:
    """One audit row describing the whole batch."""
    return AuditLog(
        actor_id=actor_id,
        action=AuditAction.UPDATE,
        entity_type=AuditEntityType.BULK_STATUS_UPDATE,
        entity_id=",".join(user_ids),
        previous_value={
            "count": len(user_ids),
            "statuses": dict(Counter(previous_statuses)),
        },
        new_value={"application_status": status},
        metadata_={
            "description": f"Bulk updated {len(user_ids)} users to {status}",
            "updated_by": actor_email,
        },
    )


async def _notify(
    notifier: NotificationSender,
    recipients: List[tuple[str, str]],
    status: str,
) -> tuple[int, int]:
    send = notifier.send_acceptance if status == "accepted" else notifier.send_rejection

    delivered = 0
    failed = 0
    for first_name, email in recipients:
        try:
            # SMTP client blocks; one send at a time
            await asyncio.to_thread(send, first_name, email)
            delivered += 1
        except NotificationDeliveryError as e:
            failed += 1
            logger.warning(f"Decision email not delivered: {e.message}")
        except Exception as e:
            failed += 1
            logger.warning(f"Decision email to {email} failed: {e}", exc_info=True)
    return delivered, failed


async def apply_bulk_status(
    session: AsyncSession,
    user_ids: List[str],
    status: str,
    actor_id: str,
    actor_email: Optional[str] = None,
    notifier: Optional[NotificationSender] = None,
) -> BulkStatusResult:
    """
    Move a batch of applicants to a decision status.

    Ids whose user is no longer pending or waitlisted are dropped without
    error. The user status, the mirrored application result and the audit
    entry commit together or not at all. Acceptance and rejection emails go
    out afterwards, one at a time; a failed email is counted and never undoes
    the status change.

    Args:
        session: Session with no transaction in progress
        user_ids: Up to MAX_BULK_BATCH user ids
        status: accepted, rejected or waitlisted
        actor_id: Operator applying the change
        actor_email: Operator email recorded in the audit metadata
        notifier: Sender for decision emails; defaults to the SMTP service

    Returns:
        BulkStatusResult with delivered/failed counts and the eligible total

    Raises:
        ReviewValidationError: Batch too large, empty, or unknown status
        BulkTransactionError: The atomic update failed; nothing was committed
    """
    unique_ids = validate_bulk_request(user_ids, status)
    target = UserApplicationStatus(status)

    try:
        async with session.begin():
            result = await session.execute(
                select(User)
                .where(User.id.in_(unique_ids))
                .where(User.application_status.in_(ELIGIBLE_STATUSES))
                .order_by(User.id)
            )
            eligible = result.scalars().all()

            if not eligible:
                logger.info(f"No eligible users among {len(unique_ids)} requested for '{status}'")
                return BulkStatusResult(
                    success=False,
                    message="No eligible users found for status update.",
                )

            eligible_ids = [user.id for user in eligible]
            recipients = [(user.first_name, user.email) for user in eligible]
            dropped = len(unique_ids) - len(eligible_ids)
            if dropped:
                logger.info(f"Dropped {dropped} ids no longer pending or waitlisted")

            await session.execute(
                update(User)
                .where(User.id.in_(eligible_ids))
                .values(
                    application_status=target,
                    accepted_at=(
                        datetime.now(timezone.utc)
                        if target == UserApplicationStatus.ACCEPTED
                        else None
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                update(Application)
                .where(Application.user_id.in_(eligible_ids))
                .values(internal_result=InternalResult(status))
                .execution_options(synchronize_session=False)
            )
            session.add(
                build_audit_entry(
                    actor_id,
                    actor_email,
                    eligible_ids,
                    [user.application_status.value for user in eligible],
                    status,
                )
            )
    except SQLAlchemyError as e:
        logger.error(f"Bulk status update to '{status}' failed: {e}", exc_info=True)
        raise BulkTransactionError(
            "Failed to perform bulk update.",
            details={"requested": len(unique_ids)},
        ) from e

    total = len(eligible)
    logger.info(f"Updated {total} users to '{status}' by {actor_id}")

    if status in NOTIFIED_STATUSES:
        success_count, failure_count = await _notify(
            notifier or get_email_service(), recipients, status
        )
    else:
        success_count, failure_count = total, 0

    message = f"Bulk update complete. {success_count} updated successfully"
    if failure_count:
        message += f", {failure_count} email(s) failed"

    return BulkStatusResult(
        success=True,
        message=message + ".",
        success_count=success_count,
        failure_count=failure_count,
        total=total,
    )
