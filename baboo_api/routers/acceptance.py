from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from baboo_api.auth import require_expert
from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.models import User
from baboo_api.schemas.acceptance import (
    AcceptanceCheckResponse,
    AcceptBySidRequest,
    AcceptRequest,
    AcceptResponse,
    PendingConversationsResponse,
)
from baboo_api.services.acceptance_service import (
    NOT_ASSIGNED_MESSAGE,
    AcceptanceError,
    accept,
    build_acceptance_notification,
    check_acceptance,
    get_owned_inquiry,
    list_for_expert,
    send_acceptance_notification,
    serialize_for_expert,
)

router = APIRouter(prefix="/expert-acceptance", tags=["expert-acceptance"])


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise AcceptanceError(NOT_ASSIGNED_MESSAGE)


def _accept(db: Session, expert: User, background_tasks: BackgroundTasks, **lookup) -> AcceptResponse:
    try:
        outcome = accept(db, expert, **lookup)
        payload = build_acceptance_notification(outcome.inquiry, expert) if outcome.transitioned else None
        db.commit()
    except AcceptanceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if payload is not None:
        background_tasks.add_task(
            send_acceptance_notification,
            payload,
            settings.make_acceptance_webhook_url,
            settings.make_webhook_secret,
            settings.http_timeout_seconds,
        )

    return AcceptResponse(
        success=True,
        message="Conversation accepted successfully" if outcome.transitioned else "Conversation already accepted",
        data=outcome.data,
    )


@router.get("/pending", response_model=PendingConversationsResponse)
def pending_conversations(db: Session = Depends(get_db), expert: User = Depends(require_expert)):
    """All conversations assigned to the expert, with derived acceptance flags."""
    result = list_for_expert(db, expert, settings.acceptance_cutover)
    db.commit()
    return result


@router.post("/accept", response_model=AcceptResponse)
def accept_conversation(
    request: AcceptRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    expert: User = Depends(require_expert),
):
    return _accept(db, expert, background_tasks, inquiry_id=request.conversationId)


@router.post("/accept-by-sid", response_model=AcceptResponse)
def accept_conversation_by_sid(
    request: AcceptBySidRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    expert: User = Depends(require_expert),
):
    return _accept(db, expert, background_tasks, conversation_sid=request.conversationSid)


@router.get("/check/{conversation_sid}", response_model=AcceptanceCheckResponse)
def check_conversation(conversation_sid: str, db: Session = Depends(get_db), expert: User = Depends(require_expert)):
    try:
        result = check_acceptance(db, expert, conversation_sid, settings.acceptance_cutover)
        db.commit()
    except AcceptanceError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return result


@router.get("/conversation/{inquiry_id}")
def conversation_details(inquiry_id: str, db: Session = Depends(get_db), expert: User = Depends(require_expert)):
    try:
        inquiry = get_owned_inquiry(db, expert.id, inquiry_id=_parse_uuid(inquiry_id))
    except AcceptanceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"success": True, "data": serialize_for_expert(inquiry, expert)}


@router.get("/conversation-by-sid/{conversation_sid}")
def conversation_details_by_sid(
    conversation_sid: str, db: Session = Depends(get_db), expert: User = Depends(require_expert)
):
    try:
        inquiry = get_owned_inquiry(db, expert.id, conversation_sid=conversation_sid)
    except AcceptanceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"success": True, "data": serialize_for_expert(inquiry, expert)}
