from concierge.schemas.whatsapp import InboundMessage, WebhookAck, WhatsAppWebhookPayload

__all__ = ["InboundMessage", "WebhookAck", "WhatsAppWebhookPayload"]
