import json
from unittest.mock import patch

import httpx
import pytest

from concierge.config import settings
from concierge.errors import TransportError
from concierge.models import Contact, Message
from concierge.services.whatsapp_service import (
    _post_message,
    build_messages_url,
    send_bot_response,
    send_whatsapp_template,
    send_whatsapp_text,
)


class Recorder:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"messages": [{"id": "wamid.out"}]})

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


class TestBuildMessagesUrl:
    def test_url(self, monkeypatch):
        monkeypatch.setattr(settings, "graph_api_base", "https://graph.facebook.com/")
        monkeypatch.setattr(settings, "graph_api_version", "v20.0")

        assert build_messages_url() == "https://graph.facebook.com/v20.0/1234567890/messages"


class TestSendWhatsappText:
    def test_sends_text_payload(self):
        recorder = Recorder()

        assert send_whatsapp_text("5511999", "Olá!", transport=httpx.MockTransport(recorder)) is True

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/1234567890/messages")
        assert request.headers["Authorization"] == "Bearer test-wa-token"
        assert recorder.body == {
            "messaging_product": "whatsapp",
            "to": "5511999",
            "type": "text",
            "text": {"body": "Olá!"},
        }

    def test_api_error_returns_false(self):
        recorder = Recorder(status_code=400)

        assert send_whatsapp_text("5511999", "Hi", transport=httpx.MockTransport(recorder)) is False

    def test_missing_credentials_returns_false(self, monkeypatch):
        monkeypatch.setattr(settings, "whatsapp_token", None)
        recorder = Recorder()

        assert send_whatsapp_text("5511999", "Hi", transport=httpx.MockTransport(recorder)) is False
        assert recorder.requests == []

    def test_missing_body_returns_false(self):
        recorder = Recorder()

        assert send_whatsapp_text("5511999", "", transport=httpx.MockTransport(recorder)) is False
        assert recorder.requests == []

    def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert send_whatsapp_text("5511999", "Hi", transport=httpx.MockTransport(handler)) is False


class TestSendWhatsappTemplate:
    def test_sends_template_payload(self):
        recorder = Recorder()

        sent = send_whatsapp_template(
            "5511999",
            "hello_world",
            language_code="pt_BR",
            transport=httpx.MockTransport(recorder),
        )

        assert sent is True
        assert recorder.body == {
            "messaging_product": "whatsapp",
            "to": "5511999",
            "type": "template",
            "template": {"name": "hello_world", "language": {"code": "pt_BR"}},
        }

    def test_missing_template_name(self):
        assert send_whatsapp_template("5511999", "") is False


class TestPostMessage:
    def test_raises_with_status_code(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": {}}))

        with pytest.raises(TransportError) as exc_info:
            _post_message({"to": "5511999"}, transport)

        assert exc_info.value.status_code == 401


class TestSendBotResponse:
    def test_logs_assistant_message_when_sent(self, db_session):
        db_session.add(Contact(wa_id="5511999"))
        db_session.commit()

        with patch("concierge.services.whatsapp_service.send_whatsapp_text", return_value=True) as mock_send:
            assert send_bot_response(db_session, "5511999", "Hi!") is True

        mock_send.assert_called_once_with("5511999", "Hi!")
        stored = db_session.query(Message).one()
        assert stored.role == "assistant"
        assert stored.content == "Hi!"

    def test_does_not_log_when_send_fails(self, db_session):
        db_session.add(Contact(wa_id="5511999"))
        db_session.commit()

        with patch("concierge.services.whatsapp_service.send_whatsapp_text", return_value=False):
            assert send_bot_response(db_session, "5511999", "Hi!") is False

        assert db_session.query(Message).count() == 0
