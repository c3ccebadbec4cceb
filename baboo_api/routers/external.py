"""Entry points for the automation broker (shared-secret protected)."""

import hmac
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger
from baboo_api.models import User
from baboo_api.schemas.conversation import ExternalCreateConversationRequest, ExternalSendMessageRequest
from baboo_api.schemas.inquiry import normalize_phone
from baboo_api.services.inquiry_service import (
    InquiryError,
    create_support_conversation,
    initial_message_body,
    send_initial_message,
)
from baboo_api.services.message_service import send_external
from baboo_api.services.twilio_service import (
    ConfigurationError,
    ConversationsClient,
    TwilioServiceError,
    get_conversations_client,
)

router = APIRouter(prefix="/external", tags=["external"])

logger = get_logger("external")


def _require_webhook_secret(provided: Optional[str]) -> None:
    expected = settings.external_webhook_secret
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _require_provider(client: ConversationsClient) -> None:
    if not client.is_configured:
        raise HTTPException(status_code=503, detail="Twilio not configured")


@router.post("/send-message")
def external_send_message(
    request: ExternalSendMessageRequest,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
):
    _require_webhook_secret(request.webhook_secret)
    if not request.conversationSid or not request.body:
        raise HTTPException(status_code=400, detail="conversationSid and body are required")
    _require_provider(client)

    try:
        message = send_external(
            db,
            client,
            request.conversationSid,
            request.body,
            author=request.author,
            from_label=request.from_,
            traveler_name=request.travelerName,
        )
    except (ConfigurationError, TwilioServiceError) as e:
        logger.error(f"External send failed: {e.message}")
        raise HTTPException(status_code=502, detail=f"Failed to send message: {e.message}")

    return {"success": True, "message": "Message sent successfully", "data": message}


@router.post("/create-conversation")
def external_create_conversation(
    request: ExternalCreateConversationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
):
    _require_webhook_secret(request.webhook_secret)
    if not (request.customerName and request.customerEmail and request.expertEmail and request.message):
        raise HTTPException(
            status_code=400, detail="customerName, customerEmail, expertEmail, and message are required"
        )
    try:
        phone = normalize_phone(request.customerPhone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _require_provider(client)

    expert = db.query(User).filter(User.email == request.expertEmail).first()

    try:
        conversation = create_support_conversation(
            db,
            client,
            customer_name=request.customerName,
            customer_email=request.customerEmail,
            customer_phone=phone,
            expert_email=request.expertEmail,
            expert_name=expert.name if expert else None,
            expert_id=expert.id if expert else None,
            created_by="external_api",
        )
    except InquiryError as e:
        raise HTTPException(status_code=e.status_code, detail={"message": e.message, "error": e.error_code})
    except (ConfigurationError, TwilioServiceError) as e:
        raise HTTPException(status_code=502, detail=f"Twilio API error: {e.message}")

    background_tasks.add_task(
        send_initial_message,
        client,
        conversation["sid"],
        initial_message_body(request.customerName, request.customerEmail, request.message),
        settings.initial_message_delay_seconds,
    )

    return {
        "success": True,
        "message": "Conversation created successfully",
        "data": {
            "sid": conversation["sid"],
            "friendlyName": conversation.get("friendlyName"),
            "state": conversation.get("state"),
            "endpoints": {
                "conversation_url": client.conversation_url(conversation["sid"]),
                "messages_url": f"{client.conversation_url(conversation['sid'])}/Messages",
            },
        },
    }
