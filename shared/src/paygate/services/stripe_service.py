"""Stripe service for prices, customers, checkout and subscriptions.

Provides integration with Stripe using the v8+ StripeClient pattern.
API objects are converted into paygate.models.billing models before they
leave this module.
"""

import hashlib
import json
import logging
from typing import Any

import stripe
from stripe import StripeClient

from paygate.models.billing import Customer, Price, Subscription

logger = logging.getLogger(__name__)

# Stripe API max for search/list page sizes used here
SEARCH_LIMIT = 100
SUBSCRIPTION_LIST_LIMIT = 10


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        """Initialize with message and optional Stripe error code.

        Args:
            message: Human-readable error message.
            stripe_error_code: Stripe-specific error code if available.
        """
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class WebhookSignatureError(StripeServiceError):
    """Raised when a webhook payload does not match its signature."""


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a key from a StripeObject or plain dict."""
    if obj is None:
        return default
    try:
        value = obj[name]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _metadata(obj: Any) -> dict[str, str]:
    raw = _field(obj, "metadata", {}) or {}
    if not isinstance(raw, dict) and hasattr(raw, "to_dict"):
        raw = raw.to_dict()
    return {str(k): str(v) for k, v in dict(raw).items()}


def _first_item_price_id(subscription: Any) -> str | None:
    items = _field(subscription, "items")
    data = _field(items, "data", []) or []
    if not data:
        return None
    price = _field(data[0], "price")
    if isinstance(price, str):
        return price
    return _field(price, "id")


def to_price(obj: Any) -> Price:
    recurring = _field(obj, "recurring")
    return Price(
        id=_field(obj, "id"),
        currency=str(_field(obj, "currency", "usd")),
        unit_amount=int(_field(obj, "unit_amount", 0)),
        active=bool(_field(obj, "active", True)),
        recurring_interval=_field(recurring, "interval"),
        recurring_interval_count=int(_field(recurring, "interval_count", 1)),
    )


def to_customer(obj: Any) -> Customer:
    return Customer(
        id=_field(obj, "id"),
        metadata=_metadata(obj),
        created=int(_field(obj, "created", 0)),
    )


def to_subscription(obj: Any) -> Subscription:
    customer = _field(obj, "customer")
    if not isinstance(customer, str):
        customer = _field(customer, "id")

    # current_period_end moved onto subscription items in newer API versions
    period_end = _field(obj, "current_period_end")
    if period_end is None:
        items = _field(_field(obj, "items"), "data", []) or []
        if items:
            period_end = _field(items[0], "current_period_end")

    return Subscription(
        id=_field(obj, "id"),
        customer_id=customer,
        status=str(_field(obj, "status", "")),
        created=int(_field(obj, "created", 0)),
        cancel_at_period_end=bool(_field(obj, "cancel_at_period_end", False)),
        current_period_end=period_end,
        cancel_at=_field(obj, "cancel_at"),
        ended_at=_field(obj, "ended_at"),
        price_id=_first_item_price_id(obj),
        metadata=_metadata(obj),
    )


class StripeService:
    """Service for Stripe operations.

    Handles:
    - Price retrieval for the plan catalog
    - Customer search and creation keyed on Telegram metadata
    - Checkout session creation and line item lookup
    - Subscription retrieval and listing
    - Billing portal sessions
    - Webhook signature validation

    Usage:
        stripe_svc = StripeService(settings.stripe_secret_key.get_secret_value())
        price = stripe_svc.retrieve_price("price_123")
    """

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str | None = None,
        client: StripeClient | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            secret_key: Stripe secret API key.
            webhook_secret: Endpoint signing secret for webhook verification.
            client: Preconfigured client, mainly for tests.
        """
        self._client = client or StripeClient(secret_key)
        self._webhook_secret = webhook_secret

    def _fail(self, operation: str, error: stripe.StripeError) -> StripeServiceError:
        error_code = getattr(error, "code", None)
        logger.error("Stripe %s failed: %s (code: %s)", operation, str(error), error_code)
        return StripeServiceError(f"Failed to {operation}: {error}", stripe_error_code=error_code)

    # Prices

    def retrieve_price(self, price_id: str) -> Price:
        """Retrieve a price by ID.

        Raises:
            StripeServiceError: If the price does not exist or the call fails.
        """
        try:
            return to_price(self._client.prices.retrieve(price_id))
        except stripe.StripeError as e:
            raise self._fail(f"retrieve price {price_id}", e) from e

    # Customers

    def search_customers(self, metadata_key: str, value: str) -> list[Customer]:
        """Search customers by an exact metadata match."""
        query = f"metadata['{metadata_key}']:'{value}'"
        try:
            result = self._client.customers.search(params={"query": query, "limit": SEARCH_LIMIT})
        except stripe.StripeError as e:
            raise self._fail("search customers", e) from e
        return [to_customer(c) for c in (_field(result, "data", []) or [])]

    def find_customer(self, telegram_user_id: int | str, telegram_chat_id: int | str) -> Customer | None:
        """Find a customer by Telegram user ID, falling back to chat ID."""
        customers = self.search_customers("telegram_user_id", str(telegram_user_id))
        if not customers:
            customers = self.search_customers("telegram_chat_id", str(telegram_chat_id))
        if not customers:
            return None
        return min(customers, key=lambda c: c.id)

    def create_customer(self, metadata: dict[str, str]) -> Customer:
        try:
            customer = self._client.customers.create(params={"metadata": metadata})
        except stripe.StripeError as e:
            raise self._fail("create customer", e) from e
        logger.info("Stripe customer created: %s", _field(customer, "id"))
        return to_customer(customer)

    def retrieve_customer(self, customer_id: str) -> Customer | None:
        """Retrieve a customer; deleted customers return None."""
        try:
            customer = self._client.customers.retrieve(customer_id)
        except stripe.StripeError as e:
            raise self._fail(f"retrieve customer {customer_id}", e) from e
        if _field(customer, "deleted", False):
            return None
        return to_customer(customer)

    # Checkout

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        recurring: bool,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> str:
        """Create a hosted Checkout session and return its URL.

        Recurring prices use subscription mode and copy the metadata onto the
        subscription; one-time prices use payment mode.

        Raises:
            StripeServiceError: If session creation fails or returns no URL.
        """
        params: dict[str, Any] = {
            "mode": "subscription" if recurring else "payment",
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if recurring:
            params["subscription_data"] = {"metadata": metadata}

        try:
            logger.info(
                "Creating Stripe checkout session for customer %s, price %s (%s)",
                customer_id,
                price_id,
                params["mode"],
            )
            session = self._client.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            raise self._fail("create checkout session", e) from e

        url = _field(session, "url")
        if not url:
            raise StripeServiceError("Checkout session has no URL")
        logger.info("Checkout session created: %s", _field(session, "id"))
        return url

    def first_line_item_price_id(self, session_id: str) -> str | None:
        """Price of the first line item of a checkout session."""
        try:
            items = self._client.checkout.sessions.line_items.list(session_id, params={"limit": 1})
        except stripe.StripeError as e:
            raise self._fail(f"list line items for {session_id}", e) from e
        data = _field(items, "data", []) or []
        if not data:
            return None
        price = _field(data[0], "price")
        return price if isinstance(price, str) else _field(price, "id")

    # Subscriptions

    def retrieve_subscription(self, subscription_id: str) -> Subscription:
        try:
            return to_subscription(self._client.subscriptions.retrieve(subscription_id))
        except stripe.StripeError as e:
            raise self._fail(f"retrieve subscription {subscription_id}", e) from e

    def list_subscriptions(self, customer_id: str) -> list[Subscription]:
        """Recent subscriptions of any status for a customer."""
        try:
            result = self._client.subscriptions.list(
                params={"customer": customer_id, "status": "all", "limit": SUBSCRIPTION_LIST_LIMIT}
            )
        except stripe.StripeError as e:
            raise self._fail(f"list subscriptions for {customer_id}", e) from e
        return [to_subscription(s) for s in (_field(result, "data", []) or [])]

    # Billing portal

    def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a customer portal session and return its URL."""
        try:
            session = self._client.billing_portal.sessions.create(
                params={"customer": customer_id, "return_url": return_url}
            )
        except stripe.StripeError as e:
            raise self._fail(f"create billing portal session for {customer_id}", e) from e
        return _field(session, "url")

    # Webhooks

    @property
    def webhook_configured(self) -> bool:
        return bool(self._webhook_secret)

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed event as plain dicts.

        Raises:
            WebhookSignatureError: If the secret is missing or the signature is invalid.
            ValueError: If the body is not a JSON object.
        """
        if not self._webhook_secret:
            raise WebhookSignatureError("Webhook signing secret is not configured")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self._webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise WebhookSignatureError("Invalid webhook signature") from e

        event = json.loads(payload)
        if not isinstance(event, dict):
            raise ValueError("Webhook payload is not a JSON object")
        logger.info("Webhook signature verified for event: %s", event.get("id"))
        return event

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """SHA-256 hash of a webhook payload, kept on the processed-event marker."""
        return hashlib.sha256(payload).hexdigest()
