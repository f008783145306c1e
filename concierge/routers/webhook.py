from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from concierge.config import settings
from concierge.database import get_db
from concierge.errors import AuthError, ParseError
from concierge.logging_config import get_logger
from concierge.schemas.whatsapp import WebhookAck
from concierge.services.inbound_service import handle_payload, parse_webhook_payload, verify_subscription
from concierge.services.profile_service import ProfileCache

logger = get_logger("webhook")

router = APIRouter()

WEBHOOK_PATH = "/webhook/whatsapp"
ALLOWED_METHODS = "GET, POST"

# Lives for the process; see ProfileCache for the eviction policy
_profile_cache = ProfileCache(
    max_entries=settings.profile_cache_max_entries,
    ttl_seconds=settings.profile_cache_ttl_seconds,
)


def get_profile_cache() -> ProfileCache:
    return _profile_cache


@router.get(WEBHOOK_PATH, response_class=PlainTextResponse)
def verify_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Meta subscription handshake: echo hub.challenge for the right token."""
    try:
        challenge = verify_subscription(hub_mode, hub_verify_token, hub_challenge)
    except AuthError:
        logger.warning("Webhook verification rejected", extra={"context": {"mode": hub_mode}})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")
    logger.info("Webhook verified")
    return PlainTextResponse(challenge)


@router.post(WEBHOOK_PATH, response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
    cache: ProfileCache = Depends(get_profile_cache),
):
    """Accept a WhatsApp delivery.

    Always answers 200: a non-2xx makes the provider retry the same delivery.
    Failures end up in the log only.
    """
    try:
        raw = await request.body()
        payload = parse_webhook_payload(raw)
        await run_in_threadpool(handle_payload, db, payload, cache)
    except ParseError as e:
        logger.warning(f"Webhook payload rejected: {e}")
    except Exception as e:
        logger.exception("Webhook processing failed", extra={"context": {"error": str(e)}})
    return WebhookAck()


async def webhook_method_not_allowed(request: Request, exc: StarletteHTTPException):
    """405 for every method other than GET and POST on the webhook path."""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and request.url.path == WEBHOOK_PATH:
        return PlainTextResponse(
            "Method Not Allowed",
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers={"Allow": ALLOWED_METHODS},
        )
    return await http_exception_handler(request, exc)
