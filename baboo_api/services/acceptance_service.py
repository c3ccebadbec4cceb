"""Expert acceptance: ownership gate, explicit accept and lazy grandfathering."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from baboo_api.logging_config import get_logger
from baboo_api.models import ExpertAdminDM, Inquiry, User
from baboo_api.services import state_service
from baboo_api.services.automation_service import send_best_effort
from baboo_api.services.state_machine import InquiryStatus, is_accepted

logger = get_logger("acceptance_service")

NOT_ASSIGNED_MESSAGE = "Conversation not found or not assigned to you"


class AcceptanceError(Exception):
    def __init__(self, message: str, status_code: int = 404):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class AcceptanceOutcome:
    inquiry: Inquiry
    transitioned: bool

    @property
    def data(self) -> dict:
        return {
            "inquiry_id": self.inquiry.id,
            "conversation_sid": self.inquiry.conversation_sid,
            "status": self.inquiry.status,
            "accepted_at": ensure_timezone(self.inquiry.updated_at),
        }


def ensure_timezone(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are stored UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def should_auto_accept(created_at: Optional[datetime], status: Optional[str], cutover: datetime) -> bool:
    """Grandfathering applies to still-assigned inquiries created strictly before the cutover."""
    if created_at is None or status != InquiryStatus.ASSIGNED.value:
        return False
    return ensure_timezone(created_at) < ensure_timezone(cutover)


def get_owned_inquiry(
    db: Session,
    expert_id: UUID,
    inquiry_id: Optional[UUID] = None,
    conversation_sid: Optional[str] = None,
) -> Inquiry:
    """Ownership check; runs before any state check."""
    query = db.query(Inquiry).filter(Inquiry.assigned_expert_id == expert_id)
    if inquiry_id is not None:
        query = query.filter(Inquiry.id == inquiry_id)
    elif conversation_sid:
        query = query.filter(Inquiry.conversation_sid == conversation_sid)
    else:
        raise AcceptanceError("conversationId or conversationSid is required", status_code=400)

    inquiry = query.first()
    if not inquiry:
        raise AcceptanceError(NOT_ASSIGNED_MESSAGE)
    return inquiry


def apply_grandfathering(db: Session, inquiry: Inquiry, cutover: datetime) -> bool:
    """Persist auto-acceptance at read time. Returns True if this read performed it."""
    if not should_auto_accept(inquiry.created_at, inquiry.status, cutover):
        return False

    updated = state_service.mark_grandfathered(db, inquiry.id)
    db.refresh(inquiry)
    if updated:
        logger.info(f"Auto-accepted inquiry {inquiry.id} created before cutover")
    return bool(updated)


def serialize_for_expert(inquiry: Inquiry, expert: User, auto_accepted: bool = False) -> dict:
    accepted = is_accepted(inquiry.status)
    return {
        "id": inquiry.id,
        "customer_name": inquiry.customer_name,
        "customer_email": inquiry.customer_email,
        "customer_phone": inquiry.customer_phone,
        "message": inquiry.message,
        "conversation_sid": inquiry.conversation_sid,
        "status": inquiry.status,
        "created_at": ensure_timezone(inquiry.created_at),
        "updated_at": ensure_timezone(inquiry.updated_at),
        "expert": {"name": expert.name, "email": expert.email},
        "expert_accepted": accepted,
        "expert_accepted_at": ensure_timezone(inquiry.updated_at) if accepted else None,
        "auto_accepted": auto_accepted,
    }


def list_for_expert(db: Session, expert: User, cutover: datetime) -> dict:
    inquiries = (
        db.query(Inquiry)
        .filter(Inquiry.assigned_expert_id == expert.id, Inquiry.conversation_sid.isnot(None))
        .order_by(Inquiry.created_at.desc())
        .all()
    )

    conversations = []
    for inquiry in inquiries:
        auto_accepted = apply_grandfathering(db, inquiry, cutover)
        conversations.append(serialize_for_expert(inquiry, expert, auto_accepted))

    accepted = sum(1 for c in conversations if c["expert_accepted"])
    return {
        "conversations": conversations,
        "total": len(conversations),
        "pending": len(conversations) - accepted,
        "accepted": accepted,
    }


def check_acceptance(db: Session, expert: User, conversation_sid: str, cutover: datetime) -> dict:
    inquiry = get_owned_inquiry(db, expert.id, conversation_sid=conversation_sid)
    auto_accepted = apply_grandfathering(db, inquiry, cutover)
    return {
        "accepted": is_accepted(inquiry.status),
        "status": inquiry.status,
        "auto_accepted": auto_accepted,
        "inquiry_id": inquiry.id,
    }


def ensure_readable(db: Session, user: User, conversation_sid: str, cutover: datetime) -> None:
    """Gate an expert's access to a support conversation's history.

    Admins always pass. Expert/admin DMs are readable by their own expert only.
    Other conversations without an inquiry are not gated.
    Raises AcceptanceError (404 not owned, 403 not yet accepted).
    """
    if user.role == "admin":
        return

    inquiry = db.query(Inquiry).filter(Inquiry.conversation_sid == conversation_sid).first()
    if inquiry is None:
        dm = db.query(ExpertAdminDM).filter(ExpertAdminDM.conversation_sid == conversation_sid).first()
        if dm is not None and dm.expert_id != user.id:
            raise AcceptanceError(NOT_ASSIGNED_MESSAGE)
        return
    if inquiry.assigned_expert_id != user.id:
        raise AcceptanceError(NOT_ASSIGNED_MESSAGE)

    apply_grandfathering(db, inquiry, cutover)
    if not is_accepted(inquiry.status):
        raise AcceptanceError("Conversation must be accepted before viewing messages", status_code=403)


def accept(
    db: Session,
    expert: User,
    inquiry_id: Optional[UUID] = None,
    conversation_sid: Optional[str] = None,
) -> AcceptanceOutcome:
    """Idempotent accept. Only the call that made the transition reports transitioned=True."""
    inquiry = get_owned_inquiry(db, expert.id, inquiry_id=inquiry_id, conversation_sid=conversation_sid)

    if is_accepted(inquiry.status):
        return AcceptanceOutcome(inquiry=inquiry, transitioned=False)

    transitioned = state_service.mark_accepted(db, inquiry.id)
    db.refresh(inquiry)

    if transitioned:
        logger.info(f"Inquiry {inquiry.id} accepted by expert {expert.email}")
    elif not is_accepted(inquiry.status):
        # Lost a race to a resolve or something else unexpected
        raise AcceptanceError(f"Cannot accept inquiry in status {inquiry.status}", status_code=409)

    return AcceptanceOutcome(inquiry=inquiry, transitioned=transitioned)


def build_acceptance_notification(inquiry: Inquiry, expert: User) -> dict:
    now = datetime.now(timezone.utc).isoformat()
    return {
        "event_type": "expert_conversation_accepted",
        "conversation_id": str(inquiry.id),
        "conversation_sid": inquiry.conversation_sid,
        "expert": {"id": str(expert.id), "name": expert.name, "email": expert.email},
        "customer": {
            "name": inquiry.customer_name,
            "email": inquiry.customer_email,
            "phone": inquiry.customer_phone,
        },
        "inquiry": {
            "id": str(inquiry.id),
            "message": inquiry.message,
            "status": InquiryStatus.IN_PROGRESS.value,
        },
        "acceptance_timestamp": now,
        "acceptance_method": "expert_dashboard",
        "timestamp": now,
    }


def send_acceptance_notification(payload: dict, url: str, secret: Optional[str] = None, timeout: float = 10.0) -> bool:
    """Best-effort, single attempt. Runs after the status change is committed."""
    sent = send_best_effort(url, payload, secret=secret, timeout=timeout)
    logger.info(
        "Acceptance notification " + ("sent" if sent else "not delivered"),
        extra={"context": {"conversation_sid": payload.get("conversation_sid")}},
    )
    return sent
