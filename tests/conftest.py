import os

# Must be set before concierge.config / concierge.database are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import concierge.models  # noqa: F401,E402
from concierge.config import settings
from concierge.database import Base
from concierge.services.profile_service import ProfileCache


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """No real credentials, always open, no Redis."""
    monkeypatch.setattr(settings, "verify_token", "test-verify-token")
    monkeypatch.setattr(settings, "whatsapp_token", "test-wa-token")
    monkeypatch.setattr(settings, "phone_number_id", "1234567890")
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "agent_id", None)
    monkeypatch.setattr(settings, "dedup_redis_url", None)
    monkeypatch.setattr(settings, "business_hours_start", 0)
    monkeypatch.setattr(settings, "business_hours_end", 0)
    monkeypatch.setattr(settings, "business_days", "0,1,2,3,4,5,6")
    monkeypatch.setattr(settings, "business_timezone", "America/Sao_Paulo")
    monkeypatch.setattr(settings, "history_limit", 6)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def profile_cache():
    return ProfileCache(max_entries=100)


def build_webhook_body(
    wa_id="5511999990000",
    text="hola",
    delivery_id="wamid.HBgM001",
    contact_name=None,
    message_type="text",
    extra_messages=0,
):
    message = {"from": wa_id, "id": delivery_id, "timestamp": "1760454000", "type": message_type}
    if message_type == "text":
        message["text"] = {"body": text}
    elif message_type == "image":
        message["image"] = {"id": "media-1", "mime_type": "image/jpeg"}

    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550000000", "phone_number_id": "1234567890"},
        "messages": [message]
        + [{**message, "id": f"{delivery_id}-{i}"} for i in range(1, extra_messages + 1)],
    }
    if contact_name is not None:
        value["contacts"] = [{"wa_id": wa_id, "profile": {"name": contact_name}}]

    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA_ID", "changes": [{"field": "messages", "value": value}]}],
    }


@pytest.fixture
def webhook_body():
    """Factory for WhatsApp Cloud API message deliveries."""
    return build_webhook_body
