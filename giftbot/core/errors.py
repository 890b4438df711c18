"""Domain errors.

Raised by the stores, the conversation manager and the order controller.
The chat dispatcher turns them into replies; the HTTP layer turns them into
status codes.
"""

from __future__ import annotations


class GiftbotError(Exception):
    """Base class for every error the order flow raises on purpose."""


class ValidationError(GiftbotError):
    """Bad region / denomination / quantity input. The user is re-prompted."""


class NoActiveSession(GiftbotError):
    """The user acted out of order (no session, or a different step)."""


class OrderNotFound(GiftbotError):
    """No order stored under the given id."""


class InvalidOrderState(GiftbotError):
    """The order's status does not allow the requested transition."""


class InsufficientStock(GiftbotError):
    """The inventory bucket is missing or holds fewer codes than requested."""


class InvalidSignature(GiftbotError):
    """A payment notification failed HMAC (or merchant) verification."""


class GatewayConfigError(GiftbotError):
    """The payment gateway credentials or IPN secret are not configured."""


class GatewayError(GiftbotError):
    """Transaction creation at the payment gateway failed."""


class ChatDeliveryError(GiftbotError):
    """The chat transport refused or failed to deliver a message."""


class LockTimeout(GiftbotError):
    """A per-key lock could not be acquired within the wait budget."""
