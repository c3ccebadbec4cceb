import time
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.database import SessionLocal
from baboo_api.logging_config import get_logger
from baboo_api.models import User
from baboo_api.services.twilio_service import ConfigurationError, TwilioServiceError

logger = get_logger("role_service")

BOT_MARKERS = ("bot", "support_bot_")


class Role(str, Enum):
    ADMIN = "admin"
    EXPERT = "expert"
    BOT = "bot"
    UNKNOWN = "unknown"


def is_bot_identity(identity: Optional[str], bot_identity: Optional[str] = None) -> bool:
    """Bot-like identities are the configured bot or anything mentioning a bot marker."""
    if not identity:
        return False
    if identity == (bot_identity or settings.bot_identity):
        return True
    lowered = identity.lower()
    return any(marker in lowered for marker in BOT_MARKERS)


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def resolve_role(db: Session, identity: Optional[str]) -> Role:
    """Derive a participant role from its identity. Never raises."""
    if not identity:
        return Role.UNKNOWN
    if is_bot_identity(identity):
        return Role.BOT

    try:
        user = find_user_by_email(db, identity)
    except SQLAlchemyError as e:
        logger.error(f"Role lookup failed for {identity}: {e}")
        return Role.UNKNOWN

    if not user:
        return Role.UNKNOWN
    if user.role == Role.ADMIN.value:
        return Role.ADMIN
    return Role.EXPERT


def conversation_role_sid(role: Role) -> str:
    if role in (Role.ADMIN, Role.BOT):
        return settings.twilio_channel_admin_role_sid
    return settings.twilio_channel_user_role_sid


def service_role_sid(role: Role) -> str:
    if role in (Role.ADMIN, Role.BOT):
        return settings.twilio_service_admin_role_sid
    return settings.twilio_service_user_role_sid


def push_participant_role(
    client,
    conversation_sid: str,
    participant_sid: str,
    identity: Optional[str],
    delay_seconds: float = 0,
    session_factory: Optional[Callable[[], Session]] = None,
) -> bool:
    """Background task: give a freshly added participant its conversation role.

    Fire-and-forget. SMS participants (no identity) are skipped and failures are
    only logged.
    """
    if not identity:
        logger.info(f"Participant {participant_sid} has no identity, skipping role update")
        return False

    if delay_seconds > 0:
        time.sleep(delay_seconds)

    db = (session_factory or SessionLocal)()
    try:
        role = resolve_role(db, identity)
    finally:
        db.close()

    role_sid = conversation_role_sid(role)
    try:
        client.update_participant_role(conversation_sid, participant_sid, role_sid)
    except (TwilioServiceError, ConfigurationError) as e:
        logger.error(
            f"Role update failed for {identity}: {e.message}",
            extra={"context": {"conversation_sid": conversation_sid, "participant_sid": participant_sid}},
        )
        return False

    logger.info(
        f"Assigned {role.value} role to {identity}",
        extra={"context": {"conversation_sid": conversation_sid, "role_sid": role_sid}},
    )
    return True
