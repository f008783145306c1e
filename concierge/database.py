from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from concierge.config import settings
from concierge.logging_config import get_logger

logger = get_logger("database")


def _connect_args(database_url: str) -> dict:
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create missing tables."""
    import concierge.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured", extra={"context": {"backend": engine.url.get_backend_name()}})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
