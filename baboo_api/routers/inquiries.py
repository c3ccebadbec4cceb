from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from baboo_api.auth import get_current_user, require_admin
from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger
from baboo_api.models import User
from baboo_api.schemas.inquiry import InquiryCreate, InquiryStatusUpdate
from baboo_api.services.inquiry_service import (
    InquiryError,
    create_inquiry,
    get_visible_inquiry,
    initial_message_body,
    list_inquiries,
    send_initial_message,
    serialize_inquiry,
)
from baboo_api.services.state_machine import InquiryStatus, InvalidTransitionError
from baboo_api.services.state_service import set_status
from baboo_api.services.twilio_service import (
    ConfigurationError,
    ConversationsClient,
    TwilioServiceError,
    get_conversations_client,
)

router = APIRouter(prefix="/inquiries", tags=["inquiries"])

logger = get_logger("inquiries")

RESERVED_STATUS_MESSAGES = {
    InquiryStatus.IN_PROGRESS: "Inquiries are accepted through /expert-acceptance/accept",
    InquiryStatus.RESOLVED: "Inquiries are resolved when their conversation is closed",
}


@router.get("")
def get_inquiries(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_inquiries(db, user, page, limit)


@router.get("/experts/list")
def get_experts(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    experts = db.query(User).filter(User.role == "expert").order_by(User.name).all()
    return {"data": [{"id": e.id, "name": e.name, "email": e.email} for e in experts]}


@router.get("/{inquiry_id}")
def get_inquiry(inquiry_id: UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        inquiry = get_visible_inquiry(db, user, inquiry_id)
    except InquiryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"data": serialize_inquiry(inquiry)}


@router.post("", status_code=201)
def post_inquiry(
    request: InquiryCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    client: ConversationsClient = Depends(get_conversations_client),
):
    """Create the provider conversation and the local inquiry for it."""
    try:
        inquiry, conversation, expert = create_inquiry(db, client, request)
        db.commit()
    except InquiryError as e:
        db.rollback()
        detail = {"message": e.message, "error": e.error_code} if e.error_code else e.message
        raise HTTPException(status_code=e.status_code, detail=detail)
    except ConfigurationError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=e.message)
    except TwilioServiceError as e:
        db.rollback()
        logger.error(f"Conversation creation failed: {e.message}")
        raise HTTPException(status_code=502, detail=f"Twilio API error: {e.message}")

    background_tasks.add_task(
        send_initial_message,
        client,
        inquiry.conversation_sid,
        initial_message_body(request.customerName, request.customerEmail, request.message),
        settings.initial_message_delay_seconds,
    )

    data = serialize_inquiry(inquiry)
    data.update(
        {
            "twilio_conversation_sid": conversation["sid"],
            "twilio_conversation_state": conversation.get("state"),
            "endpoints": {
                "conversation_url": client.conversation_url(conversation["sid"]),
                "messages_url": f"{client.conversation_url(conversation['sid'])}/Messages",
            },
        }
    )
    return {"message": "Conversation created successfully with participants", "data": data}


@router.patch("/{inquiry_id}/status")
def update_inquiry_status(
    inquiry_id: UUID,
    request: InquiryStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Admin-only manual move. Only new -> assigned is allowed here."""
    target = InquiryStatus(request.status)
    if target in RESERVED_STATUS_MESSAGES:
        raise HTTPException(status_code=409, detail=RESERVED_STATUS_MESSAGES[target])

    try:
        inquiry = get_visible_inquiry(db, admin, inquiry_id)
        set_status(db, inquiry, target)
        db.commit()
    except InquiryError:
        raise HTTPException(status_code=404, detail="Inquiry not found or not accessible")
    except InvalidTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    db.refresh(inquiry)
    return {"message": "Inquiry status updated successfully", "data": serialize_inquiry(inquiry)}


@router.delete("/{inquiry_id}")
def delete_inquiry(inquiry_id: UUID, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    try:
        inquiry = get_visible_inquiry(db, admin, inquiry_id)
    except InquiryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    db.delete(inquiry)
    db.commit()
    logger.info(f"Inquiry {inquiry_id} deleted by {admin.email}")
    return {"message": "Inquiry deleted successfully"}
