from datetime import datetime, timezone
from typing import List, Optional

import redis
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from concierge.config import settings
from concierge.logging_config import get_logger
from concierge.models import Message

logger = get_logger("message_service")

DEDUP_KEY_PREFIX = "wa:dedup"
DEDUP_SOCKET_TIMEOUT_SECONDS = 0.3

_dedup_redis_client = None
_dedup_redis_url = None


def _get_dedup_redis():
    global _dedup_redis_client, _dedup_redis_url
    if not settings.dedup_redis_url:
        return None
    if _dedup_redis_client is None or _dedup_redis_url != settings.dedup_redis_url:
        _dedup_redis_url = settings.dedup_redis_url
        _dedup_redis_client = redis.Redis.from_url(
            settings.dedup_redis_url,
            socket_timeout=DEDUP_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=DEDUP_SOCKET_TIMEOUT_SECONDS,
        )
    return _dedup_redis_client


def _delivery_logged(db: Session, role: str, delivery_id: str) -> bool:
    try:
        row = db.query(Message.id).filter(Message.role == role, Message.delivery_id == delivery_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Duplicate lookup failed after insert conflict: {e}")
        return False
    return row is not None


def save_message(
    db: Session,
    wa_id: str,
    role: str,
    content: str,
    delivery_id: Optional[str] = None,
) -> bool:
    """Append a message to the log.

    Returns False only when ``delivery_id`` is already logged for this role.
    Other storage failures are logged and swallowed.
    """
    message = Message(
        wa_id=wa_id,
        role=role,
        content=content,
        delivery_id=delivery_id,
        created_at=datetime.now(timezone.utc),
    )
    try:
        db.add(message)
        db.commit()
        return True
    except IntegrityError as e:
        db.rollback()
        if delivery_id is not None and _delivery_logged(db, role, delivery_id):
            logger.info(
                "Duplicate delivery_id (insert)",
                extra={"context": {"wa_id": wa_id, "role": role, "delivery_id": delivery_id}},
            )
            return False
        # Not a duplicate (e.g. missing contact row)
        logger.error(
            "Message insert violated a constraint",
            extra={"context": {"wa_id": wa_id, "role": role, "delivery_id": delivery_id, "error": str(e)}},
        )
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Message log write failed",
            extra={"context": {"wa_id": wa_id, "role": role, "error": str(e)}},
        )
        return True


def is_duplicate_message_id(db: Session, delivery_id: Optional[str], redis_client=None) -> bool:
    """True when this inbound delivery was already seen.

    Checks Redis first when configured, then the messages table.
    """
    if not delivery_id:
        return False

    redis_client = redis_client or _get_dedup_redis()
    if redis_client is not None:
        key = f"{DEDUP_KEY_PREFIX}:{delivery_id}"
        try:
            was_set = redis_client.set(key, "1", ex=settings.dedup_ttl_seconds, nx=True)
            if not was_set:
                logger.info("Duplicate delivery_id (redis)", extra={"context": {"delivery_id": delivery_id}})
                return True
        except redis.RedisError as e:
            logger.warning(f"Dedup redis unavailable, falling back to DB: {e}")

    try:
        duplicate = (
            db.query(Message.id)
            .filter(Message.role == "user", Message.delivery_id == delivery_id)
            .first()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(
            "DB dedup check failed, relying on insert constraint",
            extra={"context": {"delivery_id": delivery_id, "error": str(e)}},
        )
        return False

    if duplicate is not None:
        logger.info("Duplicate delivery_id (messages table)", extra={"context": {"delivery_id": delivery_id}})
    return duplicate is not None


def get_conversation_history(db: Session, wa_id: str, limit: int = 6) -> List[dict]:
    """Last ``limit`` messages for the customer, oldest first. Empty on failure."""
    try:
        messages = (
            db.query(Message)
            .filter(Message.wa_id == wa_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("History read failed", extra={"context": {"wa_id": wa_id, "error": str(e)}})
        return []

    return [{"role": msg.role, "content": msg.content} for msg in reversed(messages)]
