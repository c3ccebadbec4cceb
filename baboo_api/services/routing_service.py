"""Forward newly added provider messages to the automation broker.

The router never reads settings itself. It gets a RoutingConfig built at
the edge and a conversations client, classifies the conversation and
picks at most one destination. Internal expert/admin DMs never leave.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from baboo_api.config import DEFAULT_MAIN_CONVERSATION_WEBHOOK_URL, Settings
from baboo_api.logging_config import bind, get_logger
from baboo_api.services.automation_service import AutomationError, post_to_automation
from baboo_api.services.classifier import ConversationKind, classify
from baboo_api.services.twilio_service import ConfigurationError, ConversationsClient, TwilioServiceError

logger = get_logger("routing_service")


@dataclass(frozen=True)
class RoutingConfig:
    main_url: Optional[str] = None
    traveler_dm_url: Optional[str] = None
    secret: Optional[str] = None
    timeout: float = 10.0
    fallback_main_url: str = DEFAULT_MAIN_CONVERSATION_WEBHOOK_URL

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoutingConfig":
        return cls(
            main_url=settings.make_main_conversation_webhook_url,
            traveler_dm_url=settings.make_traveler_dm_webhook_url,
            secret=settings.make_webhook_secret,
            timeout=settings.http_timeout_seconds,
        )


@dataclass
class MessageEvent:
    conversation_sid: str
    message_sid: Optional[str] = None
    author: Optional[str] = None
    body: Optional[str] = None
    date_created: Optional[str] = None
    participant_sid: Optional[str] = None
    source: Optional[str] = None


@dataclass
class RoutingDecision:
    kind: ConversationKind
    url: Optional[str] = None
    forwarded: bool = False
    reason: str = ""
    payload: dict = field(default_factory=dict)


def resolve_destination(kind: ConversationKind, config: RoutingConfig) -> tuple[Optional[str], str]:
    """Pick the automation URL for a conversation kind. Returns (url, reason)."""
    if kind == ConversationKind.EXPERT_ADMIN_DM:
        return None, "internal_dm_suppressed"
    if kind == ConversationKind.ADMIN_TRAVELER_DM:
        if not config.traveler_dm_url:
            return None, "traveler_dm_url_not_configured"
        return config.traveler_dm_url, "traveler_dm"
    if not config.main_url:
        return config.fallback_main_url, "main_fallback"
    return config.main_url, "main"


def build_forward_payload(
    event: MessageEvent,
    kind: ConversationKind,
    conversation: Optional[dict],
    participants: list[dict],
) -> dict:
    conversation = conversation or {}
    return {
        "conversationSid": event.conversation_sid,
        "messageData": {
            "MessageSid": event.message_sid,
            "Author": event.author,
            "Body": event.body,
            "DateCreated": event.date_created,
            "Source": event.source,
        },
        "conversationDetails": {
            "attributes": conversation.get("attributes") or {},
            "participants": participants,
            "friendlyName": conversation.get("friendlyName"),
        },
        "type": kind.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class MessageRouter:
    def __init__(
        self,
        config: RoutingConfig,
        client: ConversationsClient,
        poster: Optional[Callable[..., dict]] = None,
    ):
        self.config = config
        self.client = client
        self.poster = poster or post_to_automation

    def load_details(self, conversation_sid: str) -> tuple[Optional[dict], list[dict]]:
        """Fetch conversation and participants; a failure yields empty details."""
        try:
            conversation = self.client.fetch_conversation(conversation_sid)
            participants = self.client.list_participants(conversation_sid)
            return conversation, participants
        except (TwilioServiceError, ConfigurationError) as e:
            logger.warning(
                f"Could not load conversation details, classifying without them: {e.message}",
                extra={"context": {"conversation_sid": conversation_sid}},
            )
            return None, []

    def route(self, event: MessageEvent) -> RoutingDecision:
        log = bind(logger, conversation_sid=event.conversation_sid, message_sid=event.message_sid)

        conversation, participants = self.load_details(event.conversation_sid)
        attributes = (conversation or {}).get("attributes") or {}
        kind = classify(attributes, [p.get("identity") for p in participants])

        url, reason = resolve_destination(kind, self.config)
        decision = RoutingDecision(kind=kind, url=url, reason=reason)

        if url is None:
            if reason == "internal_dm_suppressed":
                log.info("Internal DM, not forwarding")
            else:
                log.warning("No destination configured, not forwarding", context={"kind": kind.value})
            return decision

        if reason == "main_fallback":
            log.error("Main conversation webhook URL not configured, using fallback", context={"url": url})

        decision.payload = build_forward_payload(event, kind, conversation, participants)
        try:
            self.poster(url, decision.payload, secret=self.config.secret, timeout=self.config.timeout)
            decision.forwarded = True
            log.info("Forwarded message to automation", context={"kind": kind.value})
        except AutomationError as e:
            log.error(f"Forwarding failed: {e.message}", context={"kind": kind.value, "url": url})

        return decision
