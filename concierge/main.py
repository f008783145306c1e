from fastapi import Depends, FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from concierge.config import settings
from concierge.database import get_db, init_db
from concierge.logging_config import get_logger, setup_logging
from concierge.models import Contact, Message
from concierge.routers import webhook

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="WA Concierge",
    description="WhatsApp Cloud API webhook answering customers through an LLM agent",
    version="0.1.0",
)

app.include_router(webhook.router)
app.add_exception_handler(StarletteHTTPException, webhook.webhook_method_not_allowed)


@app.on_event("startup")
def create_tables() -> None:
    if not settings.auto_create_tables:
        return
    try:
        init_db()
    except SQLAlchemyError as e:
        # Webhook still acks without a database; profiles fall back to the cache
        logger.error("Could not create tables at startup", extra={"context": {"error": str(e)}})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "contacts": db.query(Contact).count(),
        "messages": db.query(Message).count(),
    }
