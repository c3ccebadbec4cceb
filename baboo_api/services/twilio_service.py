"""Thin client for the Twilio Conversations REST API."""

import json
from typing import Any, Optional

import httpx

from baboo_api.config import settings
from baboo_api.logging_config import get_logger

logger = get_logger("twilio_service")

INVALID_PHONE_NUMBER_CODE = 50407


class ConfigurationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TwilioServiceError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @property
    def is_invalid_phone_number(self) -> bool:
        return self.code == INVALID_PHONE_NUMBER_CODE

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409 or "already exists" in (self.message or "").lower()


def parse_attributes(raw: Any) -> dict:
    """Provider attributes arrive as a JSON string; anything unparseable becomes {}."""
    if isinstance(raw, dict):
        return raw
    if not raw or not isinstance(raw, str):
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Unparseable attributes", extra={"context": {"raw": raw[:200]}})
        return {}
    return parsed if isinstance(parsed, dict) else {}


def normalize_conversation(raw: dict) -> dict:
    return {
        "sid": raw.get("sid"),
        "friendlyName": raw.get("friendly_name"),
        "uniqueName": raw.get("unique_name"),
        "attributes": parse_attributes(raw.get("attributes")),
        "state": raw.get("state"),
        "dateCreated": raw.get("date_created"),
        "dateUpdated": raw.get("date_updated"),
    }


def normalize_participant(raw: dict) -> dict:
    identity = raw.get("identity")
    binding = raw.get("messaging_binding") or {}
    participant_type = "sms" if binding and not identity else "chat"
    return {
        "sid": raw.get("sid"),
        "identity": identity,
        "type": participant_type,
        "isCustomer": participant_type == "sms",
        "displayName": identity or binding.get("address") or "Unknown",
        "roleSid": raw.get("role_sid"),
    }


def normalize_message(raw: dict) -> dict:
    return {
        "sid": raw.get("sid"),
        "index": raw.get("index"),
        "author": raw.get("author"),
        "body": raw.get("body"),
        "dateCreated": raw.get("date_created"),
        "attributes": parse_attributes(raw.get("attributes")),
    }


class ConversationsClient:
    """Talks to Conversations over HTTP basic auth with an explicit timeout."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        service_sid: Optional[str] = None,
        base_url: str = "https://conversations.twilio.com",
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.service_sid = service_sid
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    @property
    def root_path(self) -> str:
        if self.service_sid:
            return f"/v1/Services/{self.service_sid}"
        return "/v1"

    def conversation_url(self, conversation_sid: str) -> str:
        return f"{self.base_url}{self.root_path}/Conversations/{conversation_sid}"

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict:
        if not self.is_configured:
            raise ConfigurationError("Twilio credentials are not configured")

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, auth=(self.account_sid, self.auth_token)) as client:
                response = client.request(method, url, params=params, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Twilio transport error: {e}", extra={"context": {"path": path}})
            raise TwilioServiceError(f"Twilio request failed: {e}") from e

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("message") or response.text or "Twilio API error"
            logger.warning(
                f"Twilio API error {response.status_code}: {message}",
                extra={"context": {"path": path, "code": payload.get("code")}},
            )
            raise TwilioServiceError(message, status_code=response.status_code, code=payload.get("code"))

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def list_conversations(self, limit: int = 15, offset: int = 0) -> tuple[list[dict], bool]:
        """Return one page of conversations, most recently updated first, plus a has-more flag."""
        page_size = min(offset + limit + 1, 1000)
        payload = self._request("GET", f"{self.root_path}/Conversations", params={"PageSize": page_size})
        conversations = [normalize_conversation(c) for c in payload.get("conversations", [])]
        conversations.sort(key=lambda c: c.get("dateUpdated") or "", reverse=True)
        window = conversations[offset : offset + limit + 1]
        has_more = len(window) > limit
        return window[:limit], has_more

    def fetch_conversation(self, conversation_sid: str) -> dict:
        payload = self._request("GET", f"{self.root_path}/Conversations/{conversation_sid}")
        return normalize_conversation(payload)

    def list_participants(self, conversation_sid: str) -> list[dict]:
        payload = self._request(
            "GET",
            f"{self.root_path}/Conversations/{conversation_sid}/Participants",
            params={"PageSize": 100},
        )
        return [normalize_participant(p) for p in payload.get("participants", [])]

    def list_messages(self, conversation_sid: str, limit: int = 100) -> list[dict]:
        payload = self._request(
            "GET",
            f"{self.root_path}/Conversations/{conversation_sid}/Messages",
            params={"PageSize": limit, "Order": "asc"},
        )
        return [normalize_message(m) for m in payload.get("messages", [])]

    def create_conversation_with_participants(
        self,
        friendly_name: str,
        unique_name: str,
        attributes: dict,
        participants: list[dict],
        messaging_service_sid: Optional[str] = None,
    ) -> dict:
        data = {
            "FriendlyName": friendly_name,
            "UniqueName": unique_name,
            "Attributes": json.dumps(attributes),
            "Participant": [json.dumps(p) for p in participants],
        }
        if messaging_service_sid:
            data["MessagingServiceSid"] = messaging_service_sid
        payload = self._request("POST", f"{self.root_path}/ConversationWithParticipants", data=data)
        return normalize_conversation(payload)

    def send_message(
        self,
        conversation_sid: str,
        body: str,
        author: Optional[str] = None,
        attributes: Optional[dict] = None,
    ) -> dict:
        data = {"Body": body}
        if author:
            data["Author"] = author
        if attributes:
            data["Attributes"] = json.dumps(attributes)
        payload = self._request("POST", f"{self.root_path}/Conversations/{conversation_sid}/Messages", data=data)
        return normalize_message(payload)

    def update_participant_role(self, conversation_sid: str, participant_sid: str, role_sid: str) -> dict:
        payload = self._request(
            "POST",
            f"{self.root_path}/Conversations/{conversation_sid}/Participants/{participant_sid}",
            data={"RoleSid": role_sid},
        )
        return normalize_participant(payload)

    def upsert_user(self, identity: str, role_sid: str) -> dict:
        """Create the chat user with a service role, or update the role if it already exists."""
        try:
            return self._request("POST", f"{self.root_path}/Users", data={"Identity": identity, "RoleSid": role_sid})
        except TwilioServiceError as e:
            if not e.is_conflict:
                raise
        logger.info(f"Twilio user {identity} exists, updating role")
        return self._request("POST", f"{self.root_path}/Users/{identity}", data={"RoleSid": role_sid})


def get_conversations_client() -> ConversationsClient:
    return ConversationsClient(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        service_sid=settings.twilio_conversations_service_sid,
        base_url=settings.twilio_api_base_url,
        timeout=settings.http_timeout_seconds,
    )
