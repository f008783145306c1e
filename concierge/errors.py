"""Failure categories of the webhook.

Only AuthError ever reaches the HTTP caller (as 403). The others are caught
where they occur, logged, and replaced by a cached or default value.
"""


class ConciergeError(Exception):
    """Base class for concierge failures."""


class AuthError(ConciergeError):
    """Webhook verification handshake rejected."""


class TransportError(ConciergeError):
    """Outbound HTTP call failed, timed out, or returned an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(ConciergeError):
    """Database read or write failed."""


class ParseError(ConciergeError):
    """Inbound webhook payload is not valid JSON or not a WhatsApp envelope."""
