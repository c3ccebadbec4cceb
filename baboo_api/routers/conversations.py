from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from baboo_api.auth import get_current_user, require_admin
from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger
from baboo_api.models import User
from baboo_api.schemas.conversation import ExpertAdminDMCreate, SendMessageRequest
from baboo_api.services.acceptance_service import AcceptanceError, ensure_readable
from baboo_api.services.classifier import ConversationKind, classify
from baboo_api.services.dm_service import create_expert_admin_dm, list_expert_admin_dms
from baboo_api.services.inquiry_service import InquiryError, list_traveler_dms
from baboo_api.services.message_service import present_messages, send_as_user
from baboo_api.services.twilio_service import (
    ConfigurationError,
    ConversationsClient,
    TwilioServiceError,
    get_conversations_client,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])

logger = get_logger("conversations")

VISIBLE_KINDS = {
    "admin": set(ConversationKind),
    "expert": {ConversationKind.MAIN, ConversationKind.EXPERT_ADMIN_DM},
}

STAT_KEYS = {
    ConversationKind.MAIN: "main",
    ConversationKind.EXPERT_ADMIN_DM: "expertAdmin",
    ConversationKind.ADMIN_TRAVELER_DM: "adminTraveler",
}


def _provider_error(e: Exception) -> HTTPException:
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail="Twilio Conversations not configured")
    logger.error(f"Twilio error: {e}")
    return HTTPException(status_code=502, detail=f"Twilio API error: {getattr(e, 'message', e)}")


def _gate(db: Session, user: User, conversation_sid: str) -> None:
    try:
        ensure_readable(db, user, conversation_sid, settings.acceptance_cutover)
        db.commit()
    except AcceptanceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/main")
def main_conversations(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=15, ge=1, le=100),
    user: User = Depends(get_current_user),
    client: ConversationsClient = Depends(get_conversations_client),
):
    """One page of provider conversations, classified and filtered by role.

    Participants are not loaded here, so only explicit tags drive the kind.
    """
    try:
        conversations, has_more = client.list_conversations(limit=limit, offset=(page - 1) * limit)
    except (ConfigurationError, TwilioServiceError) as e:
        raise _provider_error(e)

    visible_kinds = VISIBLE_KINDS.get(user.role, {ConversationKind.MAIN})
    stats = {"main": 0, "expertAdmin": 0, "adminTraveler": 0}
    visible = []
    for conversation in conversations:
        kind = classify(conversation["attributes"], [])
        stats[STAT_KEYS[kind]] += 1
        if kind in visible_kinds:
            visible.append({**conversation, "conversationType": kind.value, "participants": []})

    return {
        "conversations": visible,
        "total": len(visible),
        "categorization": stats,
        "pagination": {"page": page, "limit": limit, "hasMore": has_more, "isPartialLoad": True},
    }


@router.get("/expert-admin-dms")
def expert_admin_dms(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return list_expert_admin_dms(db, user, page, limit)
    except InquiryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/expert-admin-dms")
@router.post("/create-expert-admin-dm")
def create_dm(
    request: ExpertAdminDMCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ConversationsClient = Depends(get_conversations_client),
):
    # Either side may start the DM; the caller fills in their own id
    expert_id = request.expertId or (user.id if user.role == "expert" else None)
    admin_id = request.adminId or (user.id if user.role == "admin" else None)
    if not expert_id or not admin_id:
        raise HTTPException(status_code=400, detail="expertId and adminId are required")
    if user.id not in (expert_id, admin_id):
        raise HTTPException(status_code=403, detail="You can only create DMs you take part in")

    try:
        dm, created = create_expert_admin_dm(db, client, expert_id, admin_id)
        db.commit()
    except InquiryError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except (ConfigurationError, TwilioServiceError) as e:
        db.rollback()
        raise _provider_error(e)

    return {
        "message": "Expert-admin DM created successfully" if created else "DM already exists",
        "conversationSid": dm.conversation_sid,
    }


@router.get("/admin-traveler-dms")
def admin_traveler_dms(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    conversations = [
        {
            **row,
            "sid": row["dm_conversation_sid"],
            "friendlyName": f"DM: {row['traveler_name']}",
            "conversationType": ConversationKind.ADMIN_TRAVELER_DM.value,
        }
        for row in list_traveler_dms(db)
    ]
    return {"conversations": conversations, "total": len(conversations)}


@router.get("/admins")
def admins(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.query(User).filter(User.role == "admin").order_by(User.name).all()
    return {"admins": [{"id": u.id, "name": u.name, "email": u.email} for u in rows]}


@router.get("/experts")
def experts(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.query(User).filter(User.role == "expert").order_by(User.name).all()
    return {"experts": [{"id": u.id, "name": u.name, "email": u.email} for u in rows]}


@router.get("/{conversation_sid}/participants")
def conversation_participants(
    conversation_sid: str,
    user: User = Depends(get_current_user),
    client: ConversationsClient = Depends(get_conversations_client),
):
    try:
        conversation = client.fetch_conversation(conversation_sid)
        participants = client.list_participants(conversation_sid)
    except (ConfigurationError, TwilioServiceError) as e:
        raise _provider_error(e)

    kind = classify(conversation["attributes"], [p["identity"] for p in participants])
    return {
        "participants": participants,
        "participantCount": len(participants),
        "conversationType": kind.value,
        "conversationSid": conversation_sid,
    }


@router.get("/{conversation_sid}/messages")
def conversation_messages(
    conversation_sid: str,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ConversationsClient = Depends(get_conversations_client),
):
    """Messages with their display labels; experts must have accepted first."""
    _gate(db, user, conversation_sid)
    try:
        messages = client.list_messages(conversation_sid, limit=limit)
    except (ConfigurationError, TwilioServiceError) as e:
        raise _provider_error(e)

    messages = present_messages(db, sorted(messages, key=lambda m: m.get("index") or 0))
    return {"messages": messages, "messageCount": len(messages), "conversationSid": conversation_sid}


@router.post("/{conversation_sid}/messages")
def post_message(
    conversation_sid: str,
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: ConversationsClient = Depends(get_conversations_client),
):
    _gate(db, user, conversation_sid)
    try:
        message = send_as_user(client, user, conversation_sid, request.body)
    except (ConfigurationError, TwilioServiceError) as e:
        raise _provider_error(e)
    return {"message": "Message sent successfully", "data": message}
