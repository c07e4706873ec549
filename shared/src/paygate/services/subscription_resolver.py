"""Entitlement lookup for a Telegram user.

Status is derived from Stripe on every call and never cached. Customers are
found through the ``telegram_user_id`` metadata written at checkout, with
``telegram_chat_id`` as a fallback.
"""

import logging
from datetime import datetime, timezone

from paygate.models.billing import Customer, Subscription, SubscriptionStatus
from paygate.models.enums import StatusKind

from .stripe_service import StripeService

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = frozenset({"canceled", "cancelled", "unpaid", "past_due"})


def _timestamp(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class SubscriptionResolver:
    """Classifies a user as active, expiring, cancelled, none or error."""

    def __init__(self, stripe_service: StripeService) -> None:
        self._stripe = stripe_service

    def resolve(self, telegram_user_id: int | str) -> SubscriptionStatus:
        """Current entitlement of a Telegram user.

        Never raises: any Stripe failure is reported as ``error``.
        """
        try:
            status = self._resolve_by("telegram_user_id", str(telegram_user_id))
            if status.kind is StatusKind.NONE:
                # Private chats share the user's ID, so older customers may
                # only carry the chat ID
                by_chat = self._resolve_by("telegram_chat_id", str(telegram_user_id))
                if by_chat.kind is not StatusKind.NONE or status.customer_id is None:
                    status = by_chat
            return status
        except Exception as e:
            logger.error("Failed to resolve subscription for user %s: %s", telegram_user_id, e)
            return SubscriptionStatus(kind=StatusKind.ERROR)

    def _resolve_by(self, metadata_key: str, value: str) -> SubscriptionStatus:
        customers = sorted(self._stripe.search_customers(metadata_key, value), key=lambda c: c.id)
        if not customers:
            return SubscriptionStatus(kind=StatusKind.NONE)

        active: tuple[Customer, Subscription] | None = None
        trialing: tuple[Customer, Subscription] | None = None
        cancelled: tuple[Customer, Subscription] | None = None

        for customer in customers:
            subscriptions = sorted(
                self._stripe.list_subscriptions(customer.id),
                key=lambda s: (s.created, s.id),
            )
            for subscription in subscriptions:
                if subscription.status == "active":
                    active = (customer, subscription)
                    break
                if subscription.status == "trialing" and trialing is None:
                    trialing = (customer, subscription)
                elif (
                    subscription.status in CANCELLED_STATUSES
                    and trialing is None
                    and cancelled is None
                ):
                    cancelled = (customer, subscription)
            if active:
                break

        found = active or trialing
        if found:
            customer, subscription = found
            if subscription.cancel_at_period_end:
                return SubscriptionStatus(
                    kind=StatusKind.EXPIRING,
                    ends_at=_timestamp(subscription.current_period_end),
                    customer_id=customer.id,
                    subscription_id=subscription.id,
                )
            return SubscriptionStatus(
                kind=StatusKind.ACTIVE,
                customer_id=customer.id,
                subscription_id=subscription.id,
            )

        if cancelled:
            customer, subscription = cancelled
            ends_at = (
                subscription.cancel_at
                or subscription.current_period_end
                or subscription.ended_at
            )
            return SubscriptionStatus(
                kind=StatusKind.CANCELLED,
                ends_at=_timestamp(ends_at),
                customer_id=customer.id,
                subscription_id=subscription.id,
            )

        return SubscriptionStatus(kind=StatusKind.NONE, customer_id=customers[0].id)
