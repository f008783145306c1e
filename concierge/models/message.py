from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from concierge.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("role", "delivery_id", name="uq_messages_role_delivery_id"),
        Index("ix_messages_wa_id_created_at", "wa_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    wa_id = Column(Text, ForeignKey("contacts.wa_id"), nullable=False)
    role = Column(Text, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    delivery_id = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)

    contact = relationship("Contact", back_populates="messages")
