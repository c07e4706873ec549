"""Pydantic models for Paygate data entities."""

from .billing import CheckoutLink, Customer, Price, Subscription, SubscriptionStatus
from .callback import CallbackData, CallbackKind
from .enums import AccessOutcome, Locale, ProcessingResult, StatusKind, StripeEventType
from .errors import ErrorCode, ErrorResponse, PaygateError
from .stripe_webhook import ProcessedEventMarker
from .tenant import (
    BotIntegration,
    BotIntegrationCreate,
    BotIntegrationUpdate,
    normalize_price_ids,
)

__all__ = [
    "AccessOutcome",
    "BotIntegration",
    "BotIntegrationCreate",
    "BotIntegrationUpdate",
    "CallbackData",
    "CallbackKind",
    "CheckoutLink",
    "Customer",
    "ErrorCode",
    "ErrorResponse",
    "Locale",
    "PaygateError",
    "Price",
    "ProcessedEventMarker",
    "ProcessingResult",
    "StatusKind",
    "StripeEventType",
    "Subscription",
    "SubscriptionStatus",
    "normalize_price_ids",
]
