"""Webhook verification and the per-message processing pipeline."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.errors import AuthError, ParseError
from concierge.logging_config import bind_logger, get_logger
from concierge.schemas.whatsapp import InboundMessage, WhatsAppWebhookPayload
from concierge.services.ai_service import MAX_HISTORY_MESSAGES, generate_reply
from concierge.services.business_hours import is_within_business_hours
from concierge.services.intent_service import extract_name_from_text, first_name, is_handoff_request
from concierge.services.language_service import detect_language
from concierge.services.message_service import (
    get_conversation_history,
    is_duplicate_message_id,
    save_message,
)
from concierge.services.profile_service import ProfileCache, ProfileStore
from concierge.services.texts import localized
from concierge.services.whatsapp_service import send_bot_response

logger = get_logger("inbound_service")


class InboundOutcome(str, Enum):
    DUPLICATE = "duplicate"
    HANDOFF_REQUESTED = "handoff_requested"
    HANDOFF_ACTIVE = "handoff_active"
    NAME_REQUESTED = "name_requested"
    OUT_OF_HOURS = "out_of_hours"
    UNSUPPORTED = "unsupported"  # no text to answer (media, reactions)
    REPLIED = "replied"


def verify_subscription(mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> str:
    """Return the challenge for a valid subscribe handshake, else raise AuthError."""
    if mode == "subscribe" and token is not None and token == settings.verify_token:
        return challenge or ""
    raise AuthError("Webhook verification failed")


def parse_webhook_payload(raw: bytes) -> WhatsAppWebhookPayload:
    try:
        data = json.loads(raw or b"")
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Body must be a JSON object")
    try:
        return WhatsAppWebhookPayload.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Not a WhatsApp webhook envelope: {e.error_count()} errors") from e


def process_inbound(
    db: Session,
    inbound: InboundMessage,
    cache: ProfileCache,
    *,
    now: Optional[datetime] = None,
    redis_client=None,
) -> InboundOutcome:
    """Run one inbound message through dedup, profile, handoff, hours and reply."""
    now = now or datetime.now(timezone.utc)
    log = bind_logger("inbound_service", wa_id=inbound.wa_id, delivery_id=inbound.delivery_id)
    wa_id = inbound.wa_id
    text = inbound.text or ""

    # 1. Dedup provider retries
    if is_duplicate_message_id(db, inbound.delivery_id, redis_client=redis_client):
        log.info("Duplicate delivery ignored")
        return InboundOutcome.DUPLICATE

    # 2. Profile
    store = ProfileStore(db, cache)
    profile = store.load(wa_id)
    profile.last_seen_at = now

    # 3. Language, decided once per profile
    if not profile.language and text.strip():
        profile.language = detect_language(text)
        log.info("Language detected", context={"language": profile.language})

    # 4. Name from contact metadata, then from the text
    name_from_text = False
    if not profile.name:
        profile.name = first_name(inbound.contact_name)
        if not profile.name and inbound.is_text:
            profile.name = extract_name_from_text(text, allow_bare=profile.name_requested_at is not None)
            name_from_text = profile.name is not None

    profile = store.save(profile)

    content = text or f"[{inbound.message_type}]"
    if not save_message(db, wa_id, role="user", content=content, delivery_id=inbound.delivery_id):
        log.info("Duplicate delivery lost the insert race")
        return InboundOutcome.DUPLICATE

    language = profile.language

    # 5. Explicit request for a human
    if is_handoff_request(text):
        profile.human_handoff = True
        profile = store.save(profile)
        send_bot_response(db, wa_id, localized("handoff_confirm", language))
        log.info("Handoff requested")
        return InboundOutcome.HANDOFF_REQUESTED

    # 6. A human is already engaged
    if profile.human_handoff:
        log.info("Handoff active, automated reply suppressed")
        return InboundOutcome.HANDOFF_ACTIVE

    # 7. One name round-trip before any substantive reply
    if not profile.name and inbound.is_text:
        send_bot_response(db, wa_id, localized("ask_name", language))
        profile.name_requested_at = now
        profile = store.save(profile)
        return InboundOutcome.NAME_REQUESTED
    if name_from_text:
        send_bot_response(db, wa_id, localized("ack_set_name", language, name=profile.name))

    # 8. Business hours
    if not is_within_business_hours(now):
        notice = localized(
            "out_of_hours",
            language,
            start=settings.business_hours_start,
            end=settings.business_hours_end,
        )
        send_bot_response(db, wa_id, notice)
        return InboundOutcome.OUT_OF_HOURS

    if not text.strip():
        log.info("No text to answer", context={"message_type": inbound.message_type})
        return InboundOutcome.UNSUPPORTED

    # 9. Reply
    limit = max(1, min(settings.history_limit, MAX_HISTORY_MESSAGES))
    history = get_conversation_history(db, wa_id, limit=limit)
    reply = generate_reply(text, profile, history)
    send_bot_response(db, wa_id, reply)
    return InboundOutcome.REPLIED


def handle_payload(
    db: Session,
    payload: WhatsAppWebhookPayload,
    cache: ProfileCache,
    *,
    now: Optional[datetime] = None,
) -> Optional[InboundOutcome]:
    """Process the first message of a delivery; None when there is no message."""
    inbound = payload.first_message()
    if inbound is None:
        logger.debug("Webhook without messages (status update or empty change)")
        return None

    dropped = payload.message_count() - 1
    if dropped > 0:
        logger.warning(
            "Only the first message of a delivery is processed",
            extra={"context": {"wa_id": inbound.wa_id, "dropped": dropped}},
        )

    outcome = process_inbound(db, inbound, cache, now=now)
    logger.info(
        "Inbound processed",
        extra={"context": {"wa_id": inbound.wa_id, "delivery_id": inbound.delivery_id, "outcome": outcome.value}},
    )
    return outcome
