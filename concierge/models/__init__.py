from concierge.models.contact import Contact
from concierge.models.message import Message

__all__ = [
    "Contact",
    "Message",
]
