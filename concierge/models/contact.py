from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Text, false
from sqlalchemy.orm import relationship

from concierge.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Contact(Base):
    __tablename__ = "contacts"

    wa_id = Column(Text, primary_key=True)
    name = Column(Text)
    language = Column(Text)  # pt, en, es
    last_seen_at = Column(DateTime(timezone=True))
    human_handoff = Column(Boolean, nullable=False, default=False, server_default=false())
    name_requested_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    messages = relationship("Message", back_populates="contact")
