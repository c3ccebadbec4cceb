from baboo_api.models import ExpertAdminDM
from baboo_api.services.twilio_service import ConfigurationError

BOT = "support_bot_17855040062"


def seed_conversations(fake_client):
    fake_client.add_conversation("CHmain", {"type": "main_conversation"}, date_updated="2025-09-03")
    fake_client.add_conversation("CHexp", {"type": "expert_admin_dm"}, date_updated="2025-09-02")
    fake_client.add_conversation("CHtrav", {"typeOfChat": "adminAndTraveler"}, date_updated="2025-09-01")
    fake_client.add_conversation("CHplain", {}, date_updated="2025-08-30")


class TestMainConversations:
    def test_admin_sees_every_kind(self, client, admin, fake_client, auth_headers):
        seed_conversations(fake_client)

        response = client.get("/conversations/main", headers=auth_headers(admin))

        body = response.json()
        assert response.status_code == 200
        assert [c["sid"] for c in body["conversations"]] == ["CHmain", "CHexp", "CHtrav", "CHplain"]
        assert body["categorization"] == {"main": 2, "expertAdmin": 1, "adminTraveler": 1}
        assert body["pagination"]["hasMore"] is False

    def test_expert_never_sees_traveler_dms(self, client, expert, fake_client, auth_headers):
        seed_conversations(fake_client)

        response = client.get("/conversations/main", headers=auth_headers(expert))

        kinds = {c["sid"]: c["conversationType"] for c in response.json()["conversations"]}
        assert "CHtrav" not in kinds
        assert kinds["CHexp"] == "expert_admin_dm"

    def test_paging(self, client, admin, fake_client, auth_headers):
        seed_conversations(fake_client)

        response = client.get("/conversations/main?page=1&limit=2", headers=auth_headers(admin))

        body = response.json()
        assert [c["sid"] for c in body["conversations"]] == ["CHmain", "CHexp"]
        assert body["pagination"]["hasMore"] is True

    def test_provider_not_configured(self, client, admin, fake_client, auth_headers, monkeypatch):
        def raise_config(limit=15, offset=0):
            raise ConfigurationError("Twilio credentials are not configured")

        monkeypatch.setattr(fake_client, "list_conversations", raise_config)

        response = client.get("/conversations/main", headers=auth_headers(admin))

        assert response.status_code == 503


class TestParticipants:
    def test_lists_and_classifies(self, client, admin, fake_client, auth_headers):
        fake_client.add_conversation("CHx", {}, ["e@x.com", "admin@x.com"])

        response = client.get("/conversations/CHx/participants", headers=auth_headers(admin))

        body = response.json()
        assert body["participantCount"] == 2
        assert body["conversationType"] == "expert_admin_dm"

    def test_unknown_conversation(self, client, admin, auth_headers):
        response = client.get("/conversations/CHnope/participants", headers=auth_headers(admin))
        assert response.status_code == 502


class TestMessages:
    def test_admin_reads_with_labels(self, client, admin, expert, make_inquiry, fake_client, auth_headers):
        inquiry = make_inquiry(expert)
        fake_client.messages[inquiry.conversation_sid] = [
            {"sid": "IM2", "index": 1, "author": "e@x.com", "body": "Hi Jane", "attributes": {}},
            {"sid": "IM1", "index": 0, "author": None, "body": "Hello", "attributes": {"from": "Jane - Traveler"}},
        ]

        response = client.get(f"/conversations/{inquiry.conversation_sid}/messages", headers=auth_headers(admin))

        messages = response.json()["messages"]
        assert [m["sid"] for m in messages] == ["IM1", "IM2"]
        assert messages[0]["senderType"] == "traveler"
        assert messages[1]["from"] == "Eli - Local Expert"

    def test_dm_not_gated(self, client, expert, fake_client, auth_headers):
        fake_client.messages["CHdm"] = []

        response = client.get("/conversations/CHdm/messages", headers=auth_headers(expert))

        assert response.status_code == 200

    def test_send_labels_sender(self, client, admin, fake_client, auth_headers):
        response = client.post("/conversations/CHdm/messages", json={"body": "Hello"}, headers=auth_headers(admin))

        assert response.status_code == 200
        assert fake_client.sent[0]["author"] == "admin@x.com"
        assert fake_client.sent[0]["attributes"] == {"from": "Baboo Team"}

    def test_pending_expert_cannot_send(self, client, expert, make_inquiry, fake_client, auth_headers):
        inquiry = make_inquiry(expert)

        response = client.post(
            f"/conversations/{inquiry.conversation_sid}/messages", json={"message": "Hi"}, headers=auth_headers(expert)
        )

        assert response.status_code == 403
        assert fake_client.sent == []


class TestExpertAdminDMs:
    def test_create_then_reuse(self, client, db, admin, expert, fake_client, auth_headers):
        body = {"expertId": str(expert.id), "adminId": str(admin.id)}

        first = client.post("/conversations/expert-admin-dms", json=body, headers=auth_headers(admin))
        second = client.post("/conversations/create-expert-admin-dm", json=body, headers=auth_headers(expert))

        assert first.status_code == 200
        assert first.json()["message"] == "Expert-admin DM created successfully"
        assert second.json()["message"] == "DM already exists"
        assert second.json()["conversationSid"] == first.json()["conversationSid"]
        assert len(fake_client.created) == 1
        created = fake_client.created[0]
        assert created["attributes"]["type"] == "expert_admin_dm"
        assert BOT not in [p.get("identity") for p in created["participants"]]
        assert db.query(ExpertAdminDM).count() == 1

    def test_only_member_expert_reads_dm(self, client, admin, expert, other_expert, fake_client, auth_headers):
        created = client.post(
            "/conversations/expert-admin-dms",
            json={"expertId": str(expert.id), "adminId": str(admin.id)},
            headers=auth_headers(admin),
        )
        sid = created.json()["conversationSid"]
        fake_client.messages[sid] = [{"sid": "IM1", "index": 0, "author": "admin@x.com", "body": "Hi", "attributes": {}}]

        own = client.get(f"/conversations/{sid}/messages", headers=auth_headers(expert))
        outsider_read = client.get(f"/conversations/{sid}/messages", headers=auth_headers(other_expert))
        outsider_send = client.post(
            f"/conversations/{sid}/messages", json={"body": "Hello"}, headers=auth_headers(other_expert)
        )

        assert own.status_code == 200
        assert outsider_read.status_code == 404
        assert outsider_send.status_code == 404
        assert fake_client.sent == []

    def test_caller_fills_own_id(self, client, admin, expert, fake_client, auth_headers):
        response = client.post(
            "/conversations/expert-admin-dms", json={"adminId": str(admin.id)}, headers=auth_headers(expert)
        )

        assert response.status_code == 200

    def test_outsider_forbidden(self, client, admin, expert, other_expert, auth_headers):
        response = client.post(
            "/conversations/expert-admin-dms",
            json={"expertId": str(expert.id), "adminId": str(admin.id)},
            headers=auth_headers(other_expert),
        )

        assert response.status_code == 403

    def test_listing_scoped_to_expert(self, client, admin, expert, other_expert, auth_headers):
        client.post(
            "/conversations/expert-admin-dms",
            json={"expertId": str(expert.id), "adminId": str(admin.id)},
            headers=auth_headers(admin),
        )
        client.post(
            "/conversations/expert-admin-dms",
            json={"expertId": str(other_expert.id), "adminId": str(admin.id)},
            headers=auth_headers(admin),
        )

        mine = client.get("/conversations/expert-admin-dms", headers=auth_headers(expert)).json()
        everything = client.get("/conversations/expert-admin-dms", headers=auth_headers(admin)).json()

        assert mine["total"] == 1
        assert mine["conversations"][0]["expert"]["email"] == "e@x.com"
        assert everything["total"] == 2


class TestDirectories:
    def test_admin_traveler_dms(self, client, db, admin, expert, make_inquiry, auth_headers):
        inquiry = make_inquiry(expert)
        inquiry.dm_conversation_sid = "CHdm1"
        db.commit()

        response = client.get("/conversations/admin-traveler-dms", headers=auth_headers(admin))

        conversations = response.json()["conversations"]
        assert [c["sid"] for c in conversations] == ["CHdm1"]
        assert conversations[0]["conversationType"] == "admin_traveler_dm"

    def test_admin_traveler_dms_admin_only(self, client, expert, auth_headers):
        response = client.get("/conversations/admin-traveler-dms", headers=auth_headers(expert))
        assert response.status_code == 403

    def test_admins_and_experts(self, client, admin, expert, auth_headers):
        admins = client.get("/conversations/admins", headers=auth_headers(expert)).json()["admins"]
        experts = client.get("/conversations/experts", headers=auth_headers(admin)).json()["experts"]

        assert [a["email"] for a in admins] == ["admin@x.com"]
        assert [e["email"] for e in experts] == ["e@x.com"]
