import json
from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from baboo_api.services.twilio_service import (
    ConfigurationError,
    ConversationsClient,
    TwilioServiceError,
    normalize_participant,
    parse_attributes,
)


def make_response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.content = b"x" if payload is not None or text else b""
    response.text = text if text is not None else json.dumps(payload or {})
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError("no json")
    return response


@pytest.fixture
def http():
    with patch("baboo_api.services.twilio_service.httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        yield mock_client


@pytest.fixture
def twilio():
    return ConversationsClient("ACtest", "token", service_sid="IStest", base_url="https://conversations.test")


class TestParseAttributes:
    def test_json_string(self):
        assert parse_attributes('{"type": "main_conversation"}') == {"type": "main_conversation"}

    def test_dict_passthrough(self):
        assert parse_attributes({"a": 1}) == {"a": 1}

    def test_invalid_json_is_empty(self):
        assert parse_attributes("{not json") == {}

    def test_non_object_is_empty(self):
        assert parse_attributes("[1, 2]") == {}
        assert parse_attributes(None) == {}


class TestNormalizeParticipant:
    def test_chat_participant(self):
        result = normalize_participant({"sid": "MB1", "identity": "e@x.com", "role_sid": "RL1"})
        assert result == {
            "sid": "MB1",
            "identity": "e@x.com",
            "type": "chat",
            "isCustomer": False,
            "displayName": "e@x.com",
            "roleSid": "RL1",
        }

    def test_sms_participant(self):
        result = normalize_participant(
            {"sid": "MB2", "identity": None, "messaging_binding": {"address": "+15551234567"}}
        )
        assert result["type"] == "sms"
        assert result["isCustomer"] is True
        assert result["displayName"] == "+15551234567"


class TestConversationsClient:
    def test_not_configured(self):
        client = ConversationsClient(None, None)

        assert client.is_configured is False
        with pytest.raises(ConfigurationError):
            client.fetch_conversation("CH1")

    def test_service_scoped_paths(self, twilio):
        assert twilio.conversation_url("CH1") == "https://conversations.test/v1/Services/IStest/Conversations/CH1"

    def test_default_service_paths(self):
        client = ConversationsClient("AC", "token", base_url="https://conversations.test/")
        assert client.conversation_url("CH1") == "https://conversations.test/v1/Conversations/CH1"

    def test_fetch_conversation(self, http, twilio):
        http.request.return_value = make_response(
            payload={
                "sid": "CH1",
                "friendly_name": "Jane - Eli",
                "attributes": '{"type": "main_conversation"}',
                "state": "active",
            }
        )

        conversation = twilio.fetch_conversation("CH1")

        assert conversation["sid"] == "CH1"
        assert conversation["friendlyName"] == "Jane - Eli"
        assert conversation["attributes"] == {"type": "main_conversation"}
        method, url = http.request.call_args[0]
        assert method == "GET"
        assert url == "https://conversations.test/v1/Services/IStest/Conversations/CH1"

    def test_list_conversations_sorted_and_paged(self, http, twilio):
        http.request.return_value = make_response(
            payload={
                "conversations": [
                    {"sid": "CH1", "date_updated": "2025-09-01T00:00:00Z"},
                    {"sid": "CH2", "date_updated": "2025-09-03T00:00:00Z"},
                    {"sid": "CH3", "date_updated": "2025-09-02T00:00:00Z"},
                ]
            }
        )

        page, has_more = twilio.list_conversations(limit=2, offset=0)

        assert [c["sid"] for c in page] == ["CH2", "CH3"]
        assert has_more is True
        assert http.request.call_args[1]["params"] == {"PageSize": 3}

    def test_list_conversations_last_page(self, http, twilio):
        http.request.return_value = make_response(payload={"conversations": [{"sid": "CH1"}, {"sid": "CH2"}]})

        page, has_more = twilio.list_conversations(limit=2, offset=1)

        assert len(page) == 1
        assert has_more is False

    def test_create_with_participants(self, http, twilio):
        http.request.return_value = make_response(payload={"sid": "CHnew", "attributes": "{}"})
        participants = [{"identity": "e@x.com"}, {"messaging_binding": {"address": "+15551234567"}}]

        twilio.create_conversation_with_participants(
            "Jane - Eli", "inquiry_1", {"type": "main_conversation"}, participants, messaging_service_sid="MG1"
        )

        data = http.request.call_args[1]["data"]
        assert http.request.call_args[0][1].endswith("/ConversationWithParticipants")
        assert json.loads(data["Attributes"]) == {"type": "main_conversation"}
        assert [json.loads(p) for p in data["Participant"]] == participants
        assert data["MessagingServiceSid"] == "MG1"

    def test_send_message(self, http, twilio):
        http.request.return_value = make_response(payload={"sid": "IM1", "author": "e@x.com", "body": "Hi"})

        message = twilio.send_message("CH1", "Hi", author="e@x.com", attributes={"from": "Eli - Local Expert"})

        assert message["sid"] == "IM1"
        data = http.request.call_args[1]["data"]
        assert data["Author"] == "e@x.com"
        assert json.loads(data["Attributes"]) == {"from": "Eli - Local Expert"}

    def test_error_carries_code(self, http, twilio):
        http.request.return_value = make_response(
            status_code=400, payload={"code": 50407, "message": "Invalid messaging binding address"}
        )

        with pytest.raises(TwilioServiceError) as exc_info:
            twilio.create_conversation_with_participants("x", "y", {}, [])

        assert exc_info.value.status_code == 400
        assert exc_info.value.is_invalid_phone_number is True

    def test_transport_error(self, http, twilio):
        http.request.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(TwilioServiceError):
            twilio.list_participants("CH1")

    def test_upsert_user_updates_on_conflict(self, http, twilio):
        http.request.side_effect = [
            make_response(status_code=409, payload={"code": 50201, "message": "User already exists"}),
            make_response(payload={"identity": "e@x.com"}),
        ]

        twilio.upsert_user("e@x.com", "RL1")

        assert http.request.call_count == 2
        assert http.request.call_args[0][1].endswith("/Users/e@x.com")
        assert http.request.call_args[1]["data"] == {"RoleSid": "RL1"}

    def test_upsert_user_other_errors_raise(self, http, twilio):
        http.request.return_value = make_response(status_code=500, text="boom")

        with pytest.raises(TwilioServiceError):
            twilio.upsert_user("e@x.com", "RL1")
