"""Sender labels and the three outbound message paths.

Every outbound message carries `attributes.from`. When a stored message has
no label, the same role-based derivation is applied to its author so the
dashboard renders identically across reloads.
"""

from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.logging_config import get_logger
from baboo_api.services.role_service import find_user_by_email
from baboo_api.services.twilio_service import ConversationsClient

logger = get_logger("message_service")

BOT_LABEL = "Bot"
SYSTEM_AUTHOR = "system"
EXPERT_SUFFIX = " - Local Expert"
TRAVELER_SUFFIX = " - Traveler"

BOT_AUTHOR_MARKERS = ("bot", "system", "support_bot_")
EXTERNAL_AUTHOR_MARKERS = ("make", "webhook", "external")


def determine_message_type(author: Optional[str]) -> str:
    """bot, external or user, from the author string alone."""
    if not author:
        return "bot"
    lowered = author.lower()
    if any(marker in lowered for marker in BOT_AUTHOR_MARKERS):
        return "bot"
    if any(marker in lowered for marker in EXTERNAL_AUTHOR_MARKERS):
        return "external"
    return "user"


def format_from(user: Any, organization_label: Optional[str] = None) -> str:
    """Label for a sender with `role`, `name` and `email`."""
    role = (getattr(user, "role", None) or "").lower()
    if role == "admin":
        return organization_label or settings.organization_label
    if role == "expert":
        return f"{user.name or user.email}{EXPERT_SUFFIX}"
    if role in ("bot", SYSTEM_AUTHOR):
        return BOT_LABEL
    return getattr(user, "email", None) or ""


def derive_label(db: Session, author: Optional[str]) -> str:
    if determine_message_type(author) in ("bot", "external"):
        return BOT_LABEL
    try:
        user = find_user_by_email(db, author)
    except SQLAlchemyError as e:
        logger.error(f"Sender lookup failed for {author}: {e}")
        user = None
    if user:
        return format_from(user)
    return author


def display_label(db: Session, author: Optional[str], attributes: Optional[dict]) -> str:
    """`attributes.from` wins; otherwise derive from the author."""
    if attributes and attributes.get("from"):
        return attributes["from"]
    return derive_label(db, author)


def sender_type(label: str) -> str:
    if label == BOT_LABEL:
        return "bot"
    if label == settings.organization_label:
        return "admin"
    if label.endswith(EXPERT_SUFFIX):
        return "expert"
    if label.endswith(TRAVELER_SUFFIX):
        return "traveler"
    return "external"


def present_messages(db: Session, messages: list[dict]) -> list[dict]:
    labelled = []
    for message in messages:
        label = display_label(db, message.get("author"), message.get("attributes"))
        labelled.append({**message, "from": label, "senderType": sender_type(label)})
    return labelled


def send_as_user(client: ConversationsClient, user: Any, conversation_sid: str, body: str) -> dict:
    """Authenticated dashboard send."""
    label = format_from(user)
    return client.send_message(conversation_sid, body, author=user.email, attributes={"from": label})


def send_external(
    db: Session,
    client: ConversationsClient,
    conversation_sid: str,
    body: str,
    author: Optional[str] = None,
    from_label: Optional[str] = None,
    traveler_name: Optional[str] = None,
) -> dict:
    """Automation-originated send. An explicit label is kept as-is."""
    if not from_label:
        if traveler_name:
            from_label = f"{traveler_name}{TRAVELER_SUFFIX}"
        else:
            from_label = derive_label(db, author or SYSTEM_AUTHOR)
    return client.send_message(conversation_sid, body, author=author, attributes={"from": from_label})


def send_system(client: ConversationsClient, conversation_sid: str, body: str) -> dict:
    return client.send_message(conversation_sid, body, author=SYSTEM_AUTHOR, attributes={"from": BOT_LABEL})
