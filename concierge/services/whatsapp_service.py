"""Outbound messages through the WhatsApp Cloud API."""

from typing import Optional

import httpx
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.errors import TransportError
from concierge.logging_config import get_logger
from concierge.services.message_service import save_message

logger = get_logger("whatsapp_service")


def build_messages_url() -> str:
    base = settings.graph_api_base.rstrip("/")
    return f"{base}/{settings.graph_api_version}/{settings.phone_number_id}/messages"


def _post_message(payload: dict, transport: Optional[httpx.BaseTransport] = None) -> None:
    """POST one message payload, raising TransportError on any failure."""
    if not settings.whatsapp_token or not settings.phone_number_id:
        raise TransportError("WhatsApp credentials missing (WHATSAPP_TOKEN / PHONE_NUMBER_ID)")

    try:
        with httpx.Client(timeout=settings.http_timeout_seconds, transport=transport) as client:
            response = client.post(
                build_messages_url(),
                headers={
                    "Authorization": f"Bearer {settings.whatsapp_token}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
    except httpx.HTTPError as e:
        raise TransportError(f"WhatsApp request failed: {e}") from e

    logger.info(
        f"WhatsApp response: status={response.status_code}, to={payload.get('to')}, body={response.text[:200]}"
    )
    if not response.is_success:
        raise TransportError(f"WhatsApp API error: {response.status_code}", status_code=response.status_code)


def send_whatsapp_text(to: str, body: str, transport: Optional[httpx.BaseTransport] = None) -> bool:
    """Send a text message. Failures are logged and reported as False."""
    if not to or not body:
        logger.warning(f"send_whatsapp_text: missing to={to!r} or body")
        return False

    payload = {"messaging_product": "whatsapp", "to": to, "type": "text", "text": {"body": body}}
    try:
        _post_message(payload, transport)
        return True
    except TransportError as e:
        logger.error(f"Error sending WhatsApp message: {e}", extra={"context": {"to": to}})
        return False


def send_whatsapp_template(
    to: str,
    template_name: str,
    language_code: str = "en_US",
    transport: Optional[httpx.BaseTransport] = None,
) -> bool:
    """Send a pre-approved template message. Failures are logged and reported as False."""
    if not to or not template_name:
        logger.warning(f"send_whatsapp_template: missing to={to!r} or template_name")
        return False

    payload = {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "template",
        "template": {"name": template_name, "language": {"code": language_code}},
    }
    try:
        _post_message(payload, transport)
        return True
    except TransportError as e:
        logger.error(
            f"Error sending WhatsApp template: {e}",
            extra={"context": {"to": to, "template": template_name}},
        )
        return False


def send_bot_response(db: Session, wa_id: str, text: str) -> bool:
    """Send an automated reply and log it as an assistant message once delivered."""
    sent = send_whatsapp_text(wa_id, text)
    if sent:
        save_message(db, wa_id, role="assistant", content=text)
        logger.info(f"Delivered via WhatsApp: wa_id={wa_id}")
    else:
        logger.warning(f"Failed to deliver via WhatsApp: wa_id={wa_id}")
    return sent
