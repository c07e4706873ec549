"""Enumeration types for Paygate data models."""

from enum import Enum


class Locale(str, Enum):
    """Locales the bot can talk in."""

    EN = "en"
    UK = "uk"
    RU = "ru"


class StatusKind(str, Enum):
    """Entitlement classification for a Telegram user."""

    ACTIVE = "active"
    EXPIRING = "expiring"
    CANCELLED = "cancelled"
    NONE = "none"
    ERROR = "error"


class StripeEventType(str, Enum):
    """Stripe webhook event types the processor reacts to.

    Anything else parses to UNHANDLED and is acknowledged without work.
    """

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    UNHANDLED = "unhandled"

    @classmethod
    def parse(cls, value: str | None) -> "StripeEventType":
        """Map a raw event type string onto the enum."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNHANDLED


class ProcessingResult(str, Enum):
    """Outcome recorded for a webhook delivery."""

    PROCESSING = "processing"
    SUCCESS = "success"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    ERROR = "error"


class AccessOutcome(str, Enum):
    """What the access-granting protocol ended up telling the user."""

    ALREADY_MEMBER = "already_member"
    ADDED = "added"
    INVITE_LINK_SENT = "invite_link_sent"
    SUPPORT_CONTACTED = "support_contacted"
    FAILED = "failed"
