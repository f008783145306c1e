from dataclasses import dataclass
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from concierge.errors import ParseError


class WhatsAppText(BaseModel):
    body: Optional[str] = None


class WhatsAppButton(BaseModel):
    text: Optional[str] = None
    payload: Optional[str] = None


class WhatsAppReply(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None


class WhatsAppInteractive(BaseModel):
    type: Optional[str] = None  # button_reply, list_reply
    button_reply: Optional[WhatsAppReply] = None
    list_reply: Optional[WhatsAppReply] = None


class WhatsAppMessage(BaseModel):
    id: Optional[str] = None
    from_: str = Field(validation_alias=AliasChoices("from", "from_"))
    timestamp: Optional[str] = None
    type: str = "text"  # text, image, audio, button, interactive, reaction, ...
    text: Optional[WhatsAppText] = None
    button: Optional[WhatsAppButton] = None
    interactive: Optional[WhatsAppInteractive] = None

    def text_content(self) -> str:
        """User-visible text of the message, empty for media without caption."""
        if self.text and self.text.body:
            return self.text.body
        if self.button and self.button.text:
            return self.button.text
        if self.interactive:
            reply = self.interactive.button_reply or self.interactive.list_reply
            if reply and reply.title:
                return reply.title
        return ""


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class WhatsAppValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    contacts: list[WhatsAppContact] = Field(default_factory=list)
    # Only the first message is handled; the rest are counted, not validated
    messages: list[Any] = Field(default_factory=list)
    statuses: list[dict[str, Any]] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppValue = Field(default_factory=WhatsAppValue)


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = Field(default_factory=list)


@dataclass
class InboundMessage:
    wa_id: str
    delivery_id: Optional[str]
    message_type: str
    text: str
    contact_name: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.message_type == "text"


class WhatsAppWebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)

    def message_count(self) -> int:
        return sum(len(change.value.messages) for entry in self.entry for change in entry.changes)

    def first_message(self) -> Optional[InboundMessage]:
        """First message of the first change of the first entry.

        Only one message per delivery is handled; callers log the rest as dropped.
        Raises ParseError when that message is malformed.
        """
        if not self.entry or not self.entry[0].changes:
            return None
        value = self.entry[0].changes[0].value
        if not value.messages:
            return None

        try:
            message = WhatsAppMessage.model_validate(value.messages[0])
        except ValidationError as e:
            raise ParseError(f"Malformed first message: {e.error_count()} errors") from e

        contact_name = None
        for contact in value.contacts:
            if contact.wa_id not in (None, message.from_):
                continue
            if contact.profile and contact.profile.name and contact.profile.name.strip():
                contact_name = contact.profile.name.strip()
                break

        return InboundMessage(
            wa_id=message.from_,
            delivery_id=message.id,
            message_type=message.type,
            text=message.text_content(),
            contact_name=contact_name,
        )


class WebhookAck(BaseModel):
    status: str = "accepted"
