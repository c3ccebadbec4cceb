"""Conditional, single-row status writes for inquiries.

Every write is `UPDATE ... WHERE status IN (...)` so redelivered or
out-of-order provider events cannot move an inquiry backwards. Callers
commit.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from baboo_api.logging_config import get_logger
from baboo_api.models import Inquiry
from baboo_api.services.state_machine import (
    ENGAGEABLE_STATUSES,
    InquiryStatus,
    InvalidTransitionError,
    can_set_manually,
    sources_for,
)

logger = get_logger("state_service")


def _conditional_update(
    db: Session,
    criteria: list,
    from_statuses: Iterable[InquiryStatus],
    values: dict,
) -> int:
    values = {**values, "updated_at": datetime.now(timezone.utc)}
    return (
        db.query(Inquiry)
        .filter(*criteria, Inquiry.status.in_([s.value for s in from_statuses]))
        .update(values, synchronize_session=False)
    )


def find_by_conversation_sid(db: Session, conversation_sid: str) -> Optional[Inquiry]:
    return db.query(Inquiry).filter(Inquiry.conversation_sid == conversation_sid).first()


def mark_engaged(db: Session, conversation_sid: str) -> bool:
    """First message implies engagement: new/assigned -> in_progress."""
    updated = _conditional_update(
        db,
        [Inquiry.conversation_sid == conversation_sid],
        ENGAGEABLE_STATUSES,
        {"status": InquiryStatus.IN_PROGRESS.value},
    )
    if updated:
        logger.info(f"Inquiry for {conversation_sid} moved to in_progress on first message")
    return bool(updated)


def apply_conversation_state(db: Session, conversation_sid: str, conversation_state: Optional[str]) -> bool:
    """Map a provider conversation state onto the inquiry status."""
    state = (conversation_state or "").lower()

    if state == "active":
        target = InquiryStatus.ASSIGNED
        from_statuses = [InquiryStatus.NEW]
    elif state == "closed":
        target = InquiryStatus.RESOLVED
        from_statuses = sources_for(InquiryStatus.RESOLVED)
    else:
        return False

    updated = _conditional_update(
        db,
        [Inquiry.conversation_sid == conversation_sid],
        from_statuses,
        {"status": target.value},
    )
    if updated:
        logger.info(f"Inquiry for {conversation_sid} moved to {target.value} on state {state}")
    return bool(updated)


def mark_accepted(db: Session, inquiry_id: UUID) -> bool:
    """Returns True only for the call that actually made the transition."""
    updated = _conditional_update(
        db,
        [Inquiry.id == inquiry_id],
        sources_for(InquiryStatus.IN_PROGRESS),
        {"status": InquiryStatus.IN_PROGRESS.value},
    )
    return bool(updated)


def mark_grandfathered(db: Session, inquiry_id: UUID) -> bool:
    updated = _conditional_update(
        db,
        [Inquiry.id == inquiry_id],
        [InquiryStatus.ASSIGNED],
        {"status": InquiryStatus.IN_PROGRESS.value},
    )
    return bool(updated)


def set_status(db: Session, inquiry: Inquiry, new_status: InquiryStatus) -> bool:
    """Manual status change from the dashboard. Raises InvalidTransitionError."""
    current = InquiryStatus(inquiry.status)
    if current == new_status:
        return False
    if not can_set_manually(current, new_status):
        raise InvalidTransitionError(current, new_status)

    updated = _conditional_update(db, [Inquiry.id == inquiry.id], [current], {"status": new_status.value})
    if not updated:
        # Someone else moved it first
        raise InvalidTransitionError(current, new_status)
    return True


def link_dm_conversation(db: Session, customer_email: str, dm_conversation_sid: str) -> bool:
    """Attach a traveler back-channel to the newest inquiry for that customer that has none."""
    inquiry = (
        db.query(Inquiry)
        .filter(Inquiry.customer_email == customer_email, Inquiry.dm_conversation_sid.is_(None))
        .order_by(Inquiry.created_at.desc())
        .first()
    )
    if not inquiry:
        logger.info(f"No inquiry to link DM {dm_conversation_sid} for {customer_email}")
        return False

    updated = (
        db.query(Inquiry)
        .filter(Inquiry.id == inquiry.id, Inquiry.dm_conversation_sid.is_(None))
        .update(
            {"dm_conversation_sid": dm_conversation_sid, "updated_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    if updated:
        logger.info(f"Linked DM {dm_conversation_sid} to inquiry {inquiry.id}")
    return bool(updated)
