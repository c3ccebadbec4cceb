"""Expert/admin direct-message conversations."""

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session, aliased

from baboo_api.logging_config import get_logger
from baboo_api.models import ExpertAdminDM, User
from baboo_api.services.classifier import ConversationKind
from baboo_api.services.inquiry_service import InquiryError, make_unique_name
from baboo_api.services.twilio_service import ConfigurationError, ConversationsClient

logger = get_logger("dm_service")


def _participant(user: User) -> dict:
    return {"identity": user.email, "displayName": user.name, "type": "chat", "isCustomer": False}


def list_expert_admin_dms(db: Session, user: User, page: int = 1, limit: int = 50) -> dict:
    """Admins see every DM; experts see only their own."""
    if user.role not in ("admin", "expert"):
        raise InquiryError("Access denied", status_code=403)

    expert = aliased(User)
    admin = aliased(User)
    query = (
        db.query(ExpertAdminDM, expert, admin)
        .join(expert, ExpertAdminDM.expert_id == expert.id)
        .join(admin, ExpertAdminDM.admin_id == admin.id)
    )
    if user.role == "expert":
        query = query.filter(ExpertAdminDM.expert_id == user.id)

    rows = query.order_by(ExpertAdminDM.updated_at.desc()).offset((page - 1) * limit).limit(limit).all()

    conversations = [
        {
            "id": dm.id,
            "sid": dm.conversation_sid,
            "friendlyName": f"{dm_expert.name} ↔ {dm_admin.name}",
            "uniqueName": f"expert_admin_{dm.id}",
            "dateCreated": dm.created_at,
            "dateUpdated": dm.updated_at,
            "conversationType": ConversationKind.EXPERT_ADMIN_DM.value,
            "participants": [_participant(dm_expert), _participant(dm_admin)],
            "expert": {"id": dm_expert.id, "name": dm_expert.name, "email": dm_expert.email},
            "admin": {"id": dm_admin.id, "name": dm_admin.name, "email": dm_admin.email},
        }
        for dm, dm_expert, dm_admin in rows
    ]
    return {
        "conversations": conversations,
        "total": len(conversations),
        "pagination": {"page": page, "limit": limit, "hasMore": len(conversations) == limit},
    }


def find_dm(db: Session, expert_id: UUID, admin_id: UUID) -> Optional[ExpertAdminDM]:
    return (
        db.query(ExpertAdminDM)
        .filter(ExpertAdminDM.expert_id == expert_id, ExpertAdminDM.admin_id == admin_id)
        .first()
    )


def create_expert_admin_dm(
    db: Session, client: ConversationsClient, expert_id: UUID, admin_id: UUID
) -> tuple[ExpertAdminDM, bool]:
    """Return the DM for the pair, creating the provider conversation if needed.

    The conversation is tagged and has no bot participant, so it is classified
    as an internal DM by either tier and never forwarded.
    """
    expert = db.query(User).filter(User.id == expert_id, User.role == "expert").first()
    admin = db.query(User).filter(User.id == admin_id, User.role == "admin").first()
    if not expert or not admin:
        raise InquiryError("Expert or admin not found")

    existing = find_dm(db, expert.id, admin.id)
    if existing:
        return existing, False

    if not client.is_configured:
        raise ConfigurationError("Twilio not configured")

    conversation = client.create_conversation_with_participants(
        friendly_name=f"{expert.name} ↔ {admin.name}",
        unique_name=make_unique_name("expert_admin"),
        attributes={
            "type": ConversationKind.EXPERT_ADMIN_DM.value,
            "typeOfChat": "expertAndAdmin",
            "expert_id": str(expert.id),
            "expert_email": expert.email,
            "admin_id": str(admin.id),
            "admin_email": admin.email,
            "created_by": "dashboard",
        },
        participants=[{"identity": expert.email}, {"identity": admin.email}],
    )

    dm = ExpertAdminDM(expert_id=expert.id, admin_id=admin.id, conversation_sid=conversation["sid"])
    db.add(dm)
    db.flush()
    logger.info(f"Created expert-admin DM {dm.conversation_sid} for {expert.email} and {admin.email}")
    return dm, True
