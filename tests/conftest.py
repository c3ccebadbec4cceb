import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from datetime import datetime, timezone
from unittest.mock import Mock

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from baboo_api.config import settings
from baboo_api.database import Base, get_db
from baboo_api.main import app
from baboo_api.models import Inquiry, User
from baboo_api.services import role_service
from baboo_api.services.twilio_service import TwilioServiceError, get_conversations_client


class FakeConversationsClient:
    """In-memory stand-in for the provider; records every write."""

    def __init__(self):
        self.is_configured = True
        self.conversations = {}
        self.participants = {}
        self.messages = {}
        self.created = []
        self.sent = []
        self.role_updates = []
        self.user_upserts = []
        self.fetch_error = None
        self.create_error = None
        self.send_error = None

    def add_conversation(self, sid, attributes=None, identities=(), friendly_name=None, date_updated=None):
        self.conversations[sid] = {
            "sid": sid,
            "friendlyName": friendly_name or sid,
            "uniqueName": None,
            "attributes": attributes or {},
            "state": "active",
            "dateCreated": date_updated,
            "dateUpdated": date_updated,
        }
        self.participants[sid] = [
            {
                "sid": f"MB{i}",
                "identity": identity,
                "type": "chat" if identity else "sms",
                "isCustomer": identity is None,
                "displayName": identity or "+15551234567",
                "roleSid": None,
            }
            for i, identity in enumerate(identities)
        ]

    def conversation_url(self, sid):
        return f"https://conversations.test/v1/Conversations/{sid}"

    def list_conversations(self, limit=15, offset=0):
        items = sorted(self.conversations.values(), key=lambda c: c.get("dateUpdated") or "", reverse=True)
        window = items[offset : offset + limit + 1]
        return window[:limit], len(window) > limit

    def fetch_conversation(self, sid):
        if self.fetch_error:
            raise self.fetch_error
        if sid not in self.conversations:
            raise TwilioServiceError("The requested resource was not found", status_code=404, code=20404)
        return self.conversations[sid]

    def list_participants(self, sid):
        if self.fetch_error:
            raise self.fetch_error
        return self.participants.get(sid, [])

    def list_messages(self, sid, limit=100):
        return self.messages.get(sid, [])[:limit]

    def create_conversation_with_participants(
        self, friendly_name, unique_name, attributes, participants, messaging_service_sid=None
    ):
        if self.create_error:
            raise self.create_error
        sid = f"CH{len(self.created) + 1:032d}"
        self.created.append(
            {
                "sid": sid,
                "friendly_name": friendly_name,
                "unique_name": unique_name,
                "attributes": attributes,
                "participants": participants,
                "messaging_service_sid": messaging_service_sid,
            }
        )
        self.add_conversation(
            sid,
            attributes=attributes,
            identities=[p.get("identity") for p in participants],
            friendly_name=friendly_name,
        )
        return self.conversations[sid]

    def send_message(self, sid, body, author=None, attributes=None):
        if self.send_error:
            raise self.send_error
        message = {
            "sid": f"IM{len(self.sent) + 1}",
            "index": len(self.sent),
            "author": author,
            "body": body,
            "dateCreated": None,
            "attributes": attributes or {},
        }
        self.sent.append({"conversation_sid": sid, **message})
        return message

    def update_participant_role(self, conversation_sid, participant_sid, role_sid):
        self.role_updates.append((conversation_sid, participant_sid, role_sid))
        return {"sid": participant_sid, "roleSid": role_sid}

    def upsert_user(self, identity, role_sid):
        self.user_upserts.append((identity, role_sid))
        return {"identity": identity, "role_sid": role_sid}


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def admin(db):
    user = User(email="admin@x.com", name="Ana Admin", role="admin")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def expert(db):
    user = User(email="e@x.com", name="Eli", role="expert")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_expert(db):
    user = User(email="other@x.com", name="Olga", role="expert")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_inquiry(db):
    counter = {"n": 0}

    def _make(expert, status="assigned", created_at=None, conversation_sid=None, customer_email="jane@example.com"):
        counter["n"] += 1
        created_at = created_at or datetime.now(timezone.utc)
        inquiry = Inquiry(
            customer_name="Jane Doe",
            customer_email=customer_email,
            message="Looking for a guide in Lisbon",
            conversation_sid=conversation_sid or f"CH{counter['n']:032d}",
            assigned_expert_id=expert.id,
            status=status,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(inquiry)
        db.commit()
        return inquiry

    return _make


@pytest.fixture
def fake_client():
    return FakeConversationsClient()


@pytest.fixture
def client(session_factory, fake_client, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_conversations_client] = lambda: fake_client
    monkeypatch.setattr(role_service, "SessionLocal", session_factory)
    monkeypatch.setattr(settings, "participant_role_delay_seconds", 0)
    monkeypatch.setattr(settings, "initial_message_delay_seconds", 0)
    monkeypatch.setattr(settings, "twilio_validate_webhooks", False)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = jwt.encode({"userId": str(user.id)}, settings.jwt_secret, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def forwarded(monkeypatch):
    """Capture automation forwards made by the message router."""
    calls = []

    def fake_post(url, payload, secret=None, timeout=10.0):
        calls.append({"url": url, "payload": payload, "secret": secret, "timeout": timeout})
        return {"raw": "Accepted"}

    monkeypatch.setattr("baboo_api.services.routing_service.post_to_automation", fake_post)
    monkeypatch.setattr("baboo_api.services.automation_service.post_to_automation", fake_post)
    return calls
