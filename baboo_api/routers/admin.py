"""Admin-only automation actions: traveler messaging and bot toggles."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from baboo_api.auth import require_admin
from baboo_api.config import settings
from baboo_api.logging_config import get_logger
from baboo_api.models import User
from baboo_api.schemas.admin import (
    AdminActionResponse,
    BotSettingsRequest,
    SendToTravelerDMRequest,
    SendToTravelerRequest,
)
from baboo_api.services.automation_service import AutomationError, post_to_automation

router = APIRouter(prefix="/admin", tags=["admin"])

logger = get_logger("admin")


def _require_url(url: Optional[str], env_name: str, label: str) -> str:
    if not url:
        logger.error(f"{env_name} not configured")
        raise HTTPException(
            status_code=503,
            detail={"message": f"{label} webhook not configured", "details": f"Please set {env_name}"},
        )
    return url


def _forward(url: str, payload: dict) -> dict:
    try:
        return post_to_automation(url, payload, secret=settings.make_webhook_secret, timeout=settings.http_timeout_seconds)
    except AutomationError as e:
        logger.error(f"Automation call failed: {e.message}")
        raise HTTPException(status_code=502, detail=f"Automation webhook error: {e.message}")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/webhook-status")
def webhook_status(admin: User = Depends(require_admin)):
    def entry(value: Optional[str]) -> dict:
        return {"configured": bool(value), "url": "Set" if value else "Not set"}

    status = {
        "travelerWebhook": entry(settings.make_traveler_webhook_url),
        "travelerDMWebhook": entry(settings.make_traveler_dm_webhook_url),
        "mainConversationWebhook": entry(settings.make_main_conversation_webhook_url),
        "botSettingsWebhook": entry(settings.make_bot_settings_webhook_url),
        "webhookSecret": {
            "configured": bool(settings.make_webhook_secret),
            "status": "Set" if settings.make_webhook_secret else "Not set",
        },
    }
    return {
        "message": "Webhook configuration status",
        "status": status,
        "allConfigured": all(s["configured"] for key, s in status.items() if key != "webhookSecret"),
    }


@router.post("/send-to-traveler", response_model=AdminActionResponse)
def send_to_traveler(request: SendToTravelerRequest, admin: User = Depends(require_admin)):
    url = _require_url(settings.make_traveler_webhook_url, "MAKE_TRAVELER_WEBHOOK_URL", "Traveler")
    result = _forward(
        url,
        {
            "conversationSid": request.conversationSid,
            "message": request.message,
            "travelerName": request.travelerName,
            "adminName": admin.name,
            "timestamp": _now(),
            "source": "admin_dashboard",
        },
    )
    logger.info(f"Admin {admin.email} sent message to traveler in {request.conversationSid}")
    return AdminActionResponse(
        success=True,
        message="Message sent to traveler successfully",
        data={
            "conversationSid": request.conversationSid,
            "travelerName": request.travelerName,
            "messageLength": len(request.message),
            "makeResult": result,
        },
    )


@router.post("/send-to-traveler-dm", response_model=AdminActionResponse)
def send_to_traveler_dm(request: SendToTravelerDMRequest, admin: User = Depends(require_admin)):
    url = _require_url(settings.make_traveler_dm_webhook_url, "MAKE_TRAVELER_DM_WEBHOOK_URL", "Traveler DM")
    _forward(
        url,
        {
            "conversationSid": request.conversationSid,
            "message": request.message,
            "travelerEmail": request.travelerEmail,
            "travelerPhone": request.travelerPhone,
            "travelerName": request.travelerName,
            "adminName": request.adminName or admin.name,
            "timestamp": _now(),
            "type": "admin_traveler_dm",
        },
    )
    return AdminActionResponse(
        success=True,
        message="Message sent to traveler via DM webhook successfully",
        data={"conversationSid": request.conversationSid, "travelerName": request.travelerName},
    )


@router.post("/bot-settings", response_model=AdminActionResponse)
def update_bot_settings(request: BotSettingsRequest, admin: User = Depends(require_admin)):
    url = _require_url(settings.make_bot_settings_webhook_url, "MAKE_BOT_SETTINGS_WEBHOOK_URL", "Bot settings")
    result = _forward(
        url,
        {
            "action": request.action,
            "type": request.type,
            "conversationSid": request.conversationSid,
            "adminEmail": admin.email,
            "adminName": admin.name,
            "timestamp": _now(),
        },
    )
    logger.info(f"{request.type} {request.action}d for {request.conversationSid} by {admin.email}")
    return AdminActionResponse(
        success=True,
        message=f"{request.type} {request.action}d successfully",
        data={
            "action": request.action,
            "type": request.type,
            "conversationSid": request.conversationSid,
            "makeResult": result,
        },
    )


@router.get("/bot-settings/{conversation_sid}")
def get_bot_settings(conversation_sid: str, admin: User = Depends(require_admin)):
    # Bot state lives in the automation broker; nothing is stored locally
    return {"conversationSid": conversation_sid, "settings": {"expertBot": True, "travelerBot": True}}
