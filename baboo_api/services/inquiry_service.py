"""Inquiry and conversation creation.

A support conversation is created with its classification tags and the
standard participant set (expert, bot, optional SMS-bound customer) in one
provider call, then the local inquiry row is written. The initial system
message goes out later as a background task.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.logging_config import get_logger
from baboo_api.models import Inquiry, User
from baboo_api.schemas.inquiry import InquiryCreate
from baboo_api.services.classifier import ConversationKind, classify
from baboo_api.services.message_service import send_system
from baboo_api.services.role_service import resolve_role, service_role_sid
from baboo_api.services.state_machine import InquiryStatus
from baboo_api.services.twilio_service import ConfigurationError, ConversationsClient, TwilioServiceError

logger = get_logger("inquiry_service")


class InquiryError(Exception):
    def __init__(self, message: str, status_code: int = 400, error_code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


def make_unique_name(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def initial_message_body(customer_name: str, customer_email: str, message: str) -> str:
    return f"New inquiry from {customer_name} ({customer_email}): {message}"


def build_participants(expert_identity: str, customer_phone: Optional[str] = None) -> list[dict]:
    participants = [
        {"identity": expert_identity},
        {"identity": settings.bot_identity},
    ]
    if customer_phone and settings.twilio_phone_number:
        participants.append(
            {
                "messaging_binding": {
                    "address": customer_phone,
                    "proxy_address": settings.twilio_phone_number,
                }
            }
        )
    elif customer_phone:
        logger.warning("Customer phone given but TWILIO_PHONE_NUMBER not set, skipping SMS participant")
    return participants


def ensure_provider_users(db: Session, client: ConversationsClient, identities: list[str]) -> None:
    """Best-effort: give each chat identity its service-level role before it joins."""
    for identity in identities:
        role_sid = service_role_sid(resolve_role(db, identity))
        try:
            client.upsert_user(identity, role_sid)
        except (TwilioServiceError, ConfigurationError) as e:
            logger.warning(f"Could not ensure provider role for {identity}: {e.message}")


def create_support_conversation(
    db: Session,
    client: ConversationsClient,
    customer_name: str,
    customer_email: str,
    customer_phone: Optional[str],
    expert_email: str,
    expert_name: Optional[str],
    expert_id: Optional[UUID] = None,
    created_by: str = "dashboard",
) -> dict:
    """Create the three-party conversation at the provider.

    Raises:
        ConfigurationError: provider credentials missing
        InquiryError: provider rejected the SMS number
        TwilioServiceError: any other provider failure
    """
    if not client.is_configured:
        raise ConfigurationError("Twilio not configured. Please set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN.")

    attributes = {
        "type": ConversationKind.MAIN.value,
        "typeOfChat": "customerExpertAdmin",
        "customer_name": customer_name,
        "customer_email": customer_email,
        "customer_phone": customer_phone,
        "expert_name": expert_name,
        "expert_email": expert_email,
        "created_by": created_by,
    }
    if expert_id is not None:
        attributes["expert_id"] = str(expert_id)

    participants = build_participants(expert_email, customer_phone)
    kind = classify(attributes, [p.get("identity") for p in participants])
    if kind != ConversationKind.MAIN:
        logger.warning(f"New support conversation classified as {kind.value}")

    ensure_provider_users(db, client, [expert_email, settings.bot_identity])

    try:
        conversation = client.create_conversation_with_participants(
            friendly_name=f"{customer_name} - {expert_name or expert_email}",
            unique_name=make_unique_name("inquiry" if created_by == "dashboard" else "external"),
            attributes=attributes,
            participants=participants,
            messaging_service_sid=settings.twilio_messaging_service_sid,
        )
    except TwilioServiceError as e:
        if e.is_invalid_phone_number:
            raise InquiryError(
                "Invalid phone number for SMS. Please check the phone number format and ensure it can receive SMS.",
                status_code=400,
                error_code="INVALID_PHONE_NUMBER",
            ) from e
        raise

    logger.info(
        f"Created conversation {conversation['sid']}",
        extra={"context": {"created_by": created_by, "participants": len(participants)}},
    )
    return conversation


def create_inquiry(db: Session, client: ConversationsClient, data: InquiryCreate) -> tuple[Inquiry, dict, User]:
    expert = db.query(User).filter(User.id == data.assignedExpertId).first()
    if not expert:
        raise InquiryError("Assigned expert not found")

    conversation = create_support_conversation(
        db,
        client,
        customer_name=data.customerName,
        customer_email=data.customerEmail,
        customer_phone=data.customerPhone,
        expert_email=expert.email,
        expert_name=expert.name,
        expert_id=expert.id,
    )

    now = datetime.now(timezone.utc)
    inquiry = Inquiry(
        customer_name=data.customerName,
        customer_email=data.customerEmail,
        customer_phone=data.customerPhone,
        message=data.message,
        conversation_sid=conversation["sid"],
        assigned_expert_id=expert.id,
        status=InquiryStatus.ASSIGNED.value,
        created_at=now,
        updated_at=now,
    )
    db.add(inquiry)
    db.flush()

    logger.info(f"Created inquiry {inquiry.id} for conversation {inquiry.conversation_sid}")
    return inquiry, conversation, expert


def send_initial_message(client: ConversationsClient, conversation_sid: str, body: str, delay_seconds: float) -> bool:
    """Runs after the response; the provider needs a moment before the conversation accepts messages."""
    if delay_seconds > 0:
        time.sleep(delay_seconds)
    try:
        send_system(client, conversation_sid, body)
        logger.info(f"Sent initial message to {conversation_sid}")
        return True
    except (TwilioServiceError, ConfigurationError) as e:
        logger.error(f"Failed to send initial message to {conversation_sid}: {e.message}")
        return False


def _visible_to(query, user: User):
    if user.role == "admin":
        return query
    return query.filter(Inquiry.assigned_expert_id == user.id)


def serialize_inquiry(inquiry: Inquiry) -> dict:
    expert = inquiry.assigned_expert
    return {
        "id": inquiry.id,
        "customer_name": inquiry.customer_name,
        "customer_email": inquiry.customer_email,
        "customer_phone": inquiry.customer_phone,
        "message": inquiry.message,
        "conversation_sid": inquiry.conversation_sid,
        "dm_conversation_sid": inquiry.dm_conversation_sid,
        "assigned_expert_id": inquiry.assigned_expert_id,
        "expert_name": expert.name if expert else None,
        "expert_email": expert.email if expert else None,
        "status": inquiry.status,
        "created_at": inquiry.created_at,
        "updated_at": inquiry.updated_at,
    }


def list_inquiries(db: Session, user: User, page: int = 1, limit: int = 10) -> dict:
    """Admins see every inquiry, experts only their own."""
    query = _visible_to(db.query(Inquiry), user)
    total = query.count()
    rows = query.order_by(Inquiry.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [serialize_inquiry(i) for i in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_visible_inquiry(db: Session, user: User, inquiry_id: UUID) -> Inquiry:
    inquiry = _visible_to(db.query(Inquiry), user).filter(Inquiry.id == inquiry_id).first()
    if not inquiry:
        raise InquiryError("Inquiry not found", status_code=404)
    return inquiry


def list_traveler_dms(db: Session) -> list[dict]:
    rows = (
        db.query(Inquiry)
        .filter(Inquiry.dm_conversation_sid.isnot(None))
        .order_by(Inquiry.updated_at.desc())
        .all()
    )
    return [
        {
            "inquiry_id": i.id,
            "dm_conversation_sid": i.dm_conversation_sid,
            "conversation_sid": i.conversation_sid,
            "traveler_name": i.customer_name,
            "traveler_email": i.customer_email,
            "status": i.status,
            "updated_at": i.updated_at,
        }
        for i in rows
    ]
