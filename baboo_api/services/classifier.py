"""Conversation kind classification.

Tier 1 reads explicit tags from the conversation attributes. Tier 2 falls
back to the shape of the participant list (bot vs non-bot identities).
"""

from enum import Enum
from typing import Iterable, Optional

from baboo_api.logging_config import get_logger
from baboo_api.services.role_service import is_bot_identity

logger = get_logger("classifier")


class ConversationKind(str, Enum):
    MAIN = "main_conversation"
    ADMIN_TRAVELER_DM = "admin_traveler_dm"
    EXPERT_ADMIN_DM = "expert_admin_dm"


# (type, typeOfChat) pairs, checked in order
TAGS = [
    (ConversationKind.ADMIN_TRAVELER_DM, "admin_traveler_dm", "adminAndTraveler"),
    (ConversationKind.EXPERT_ADMIN_DM, "expert_admin_dm", "expertAndAdmin"),
    (ConversationKind.MAIN, "main_conversation", "customerExpertAdmin"),
]


def classify_by_tags(attributes: Optional[dict]) -> Optional[ConversationKind]:
    if not isinstance(attributes, dict):
        return None
    conversation_type = attributes.get("type")
    type_of_chat = attributes.get("typeOfChat")
    for kind, type_tag, chat_tag in TAGS:
        if conversation_type == type_tag or type_of_chat == chat_tag:
            return kind
    return None


def classify_by_participants(identities: Iterable[Optional[str]]) -> ConversationKind:
    bots = 0
    humans = 0
    for identity in identities:
        if is_bot_identity(identity):
            bots += 1
        else:
            humans += 1

    if humans == 1 and bots >= 1:
        return ConversationKind.ADMIN_TRAVELER_DM
    if humans == 2 and bots == 0:
        return ConversationKind.EXPERT_ADMIN_DM
    if humans >= 2 and bots >= 1:
        return ConversationKind.MAIN

    logger.info(
        "Ambiguous participant shape, defaulting to main",
        extra={"context": {"bots": bots, "humans": humans}},
    )
    return ConversationKind.MAIN


def classify(attributes: Optional[dict], identities: Optional[Iterable[Optional[str]]]) -> ConversationKind:
    """Classify a conversation. Never raises; anything unexpected is MAIN."""
    try:
        kind = classify_by_tags(attributes)
        if kind is not None:
            return kind
        return classify_by_participants(list(identities or []))
    except Exception as e:
        logger.error(f"Classification failed, defaulting to main: {e}")
        return ConversationKind.MAIN
