"""Inbound Conversations webhooks.

Every endpoint answers 200 whatever happens inside: the provider retries
anything else, and all handlers here are idempotent anyway. Status writes are
committed before any forwarding or role update is scheduled.
"""

from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from twilio.request_validator import RequestValidator

from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger
from baboo_api.schemas.webhook import (
    ConversationAddedEvent,
    ConversationStateEvent,
    MessageAddedEvent,
    ParticipantAddedEvent,
    WebhookAck,
)
from baboo_api.services import state_service
from baboo_api.services.classifier import ConversationKind, classify_by_tags
from baboo_api.services.role_service import push_participant_role
from baboo_api.services.routing_service import MessageEvent, MessageRouter, RoutingConfig
from baboo_api.services.twilio_service import ConversationsClient, get_conversations_client, parse_attributes

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger("webhooks")


def get_routing_config() -> RoutingConfig:
    return RoutingConfig.from_settings(settings)


async def _read_form(request: Request) -> dict:
    form = await request.form()
    return {key: value for key, value in form.items()}


def _signature_valid(request: Request, params: dict) -> bool:
    if not settings.twilio_validate_webhooks:
        return True
    if not settings.twilio_auth_token:
        logger.warning("Webhook validation enabled but TWILIO_AUTH_TOKEN is missing, accepting request")
        return True
    validator = RequestValidator(settings.twilio_auth_token)
    signature = request.headers.get("X-Twilio-Signature", "")
    return validator.validate(str(request.url), params, signature)


def _route_safely(message_router: MessageRouter, event: MessageEvent) -> None:
    try:
        message_router.route(event)
    except Exception as e:
        logger.exception(f"Routing failed: {e}", extra={"context": {"conversation_sid": event.conversation_sid}})


def handle_message_added(
    db: Session,
    params: dict,
    background_tasks: BackgroundTasks,
    client: ConversationsClient,
    config: RoutingConfig,
) -> None:
    event = MessageAddedEvent.model_validate(params)
    if not event.conversation_sid:
        logger.warning("message-added without ConversationSid")
        return

    state_service.mark_engaged(db, event.conversation_sid)
    db.commit()

    message_event = MessageEvent(
        conversation_sid=event.conversation_sid,
        message_sid=event.message_sid,
        author=event.author,
        body=event.body,
        date_created=event.date_created,
        participant_sid=event.participant_sid,
        source=event.source,
    )
    background_tasks.add_task(_route_safely, MessageRouter(config, client), message_event)


def handle_conversation_state_updated(
    db: Session,
    params: dict,
    background_tasks: BackgroundTasks,
    client: ConversationsClient,
    config: RoutingConfig,
) -> None:
    event = ConversationStateEvent.model_validate(params)
    if not event.conversation_sid:
        logger.warning("conversation-state-updated without ConversationSid")
        return
    state_service.apply_conversation_state(db, event.conversation_sid, event.conversation_state)
    db.commit()


def handle_participant_added(
    db: Session,
    params: dict,
    background_tasks: BackgroundTasks,
    client: ConversationsClient,
    config: RoutingConfig,
) -> None:
    event = ParticipantAddedEvent.model_validate(params)
    if not event.identity:
        logger.info(
            "SMS participant added, no role assignment",
            extra={"context": {"conversation_sid": event.conversation_sid, "participant_sid": event.participant_sid}},
        )
        return
    if not event.conversation_sid or not event.participant_sid:
        logger.warning("participant-added without ConversationSid or ParticipantSid")
        return

    background_tasks.add_task(
        push_participant_role,
        client,
        event.conversation_sid,
        event.participant_sid,
        event.identity,
        settings.participant_role_delay_seconds,
    )


def handle_conversation_added(
    db: Session,
    params: dict,
    background_tasks: BackgroundTasks,
    client: ConversationsClient,
    config: RoutingConfig,
) -> None:
    event = ConversationAddedEvent.model_validate(params)
    attributes = parse_attributes(event.attributes)
    if classify_by_tags(attributes) != ConversationKind.ADMIN_TRAVELER_DM:
        return

    traveler_email = attributes.get("travelerEmail") or attributes.get("traveler_email")
    if not traveler_email or not event.conversation_sid:
        logger.info("Traveler DM created without traveler email, nothing to link")
        return

    state_service.link_dm_conversation(db, traveler_email, event.conversation_sid)
    db.commit()


EVENT_HANDLERS: dict[str, Callable] = {
    "onMessageAdded": handle_message_added,
    "onConversationStateUpdated": handle_conversation_state_updated,
    "onParticipantAdded": handle_participant_added,
    "onConversationAdded": handle_conversation_added,
}


async def _process(
    request: Request,
    handler: Optional[Callable],
    db: Session,
    background_tasks: BackgroundTasks,
    client: ConversationsClient,
    config: RoutingConfig,
) -> WebhookAck:
    try:
        params = await _read_form(request)
    except Exception as e:
        logger.exception(f"Unreadable webhook body: {e}")
        return WebhookAck(success=False, message="unreadable body")

    if not _signature_valid(request, params):
        logger.warning("Invalid Twilio signature, ignoring event", extra={"context": {"path": request.url.path}})
        return WebhookAck(success=False, message="invalid signature")

    if handler is None:
        handler = EVENT_HANDLERS.get(params.get("EventType", ""))
        if handler is None:
            logger.info(f"Unhandled event type {params.get('EventType')}")
            return WebhookAck(message="ignored")

    try:
        handler(db, params, background_tasks, client, config)
    except Exception as e:
        db.rollback()
        logger.exception(
            f"Webhook handling failed: {e}",
            extra={"context": {"path": request.url.path, "conversation_sid": params.get("ConversationSid")}},
        )
        return WebhookAck(success=False, message="error logged")

    return WebhookAck()


@router.post("/message-added", response_model=WebhookAck)
async def message_added(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
    config: RoutingConfig = Depends(get_routing_config),
):
    return await _process(request, handle_message_added, db, background_tasks, client, config)


@router.post("/conversation-state-updated", response_model=WebhookAck)
async def conversation_state_updated(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
    config: RoutingConfig = Depends(get_routing_config),
):
    return await _process(request, handle_conversation_state_updated, db, background_tasks, client, config)


@router.post("/participant-added", response_model=WebhookAck)
async def participant_added(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
    config: RoutingConfig = Depends(get_routing_config),
):
    return await _process(request, handle_participant_added, db, background_tasks, client, config)


@router.post("/conversation-added", response_model=WebhookAck)
async def conversation_added(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
    config: RoutingConfig = Depends(get_routing_config),
):
    return await _process(request, handle_conversation_added, db, background_tasks, client, config)


@router.post("/twilio-event", response_model=WebhookAck)
async def twilio_event(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    client: ConversationsClient = Depends(get_conversations_client),
    config: RoutingConfig = Depends(get_routing_config),
):
    """Single endpoint for the service-level webhook; dispatches on EventType."""
    return await _process(request, None, db, background_tasks, client, config)
