"""Webhook handler for processing Stripe events.

Provides business logic for handling webhook events separate from
HTTP routing concerns. This enables:
- Unit testing without HTTP overhead
- Idempotent processing through an atomic per-event claim in DynamoDB

Every handled payment ends in a channel access grant for the Telegram user
recorded in the Stripe metadata at checkout.
"""

import datetime as dt
import logging
import time
from dataclasses import dataclass
from typing import Any

from paygate.models.enums import AccessOutcome, ProcessingResult, StripeEventType
from paygate.models.errors import ErrorCode, PaygateError
from paygate.models.stripe_webhook import ProcessedEventMarker
from paygate.utils.logging import log_webhook_event

from .channel_access import ChannelAccessGranter
from .dynamodb import DynamoDBService
from .stripe_service import StripeService, WebhookSignatureError, to_subscription
from .tenant_registry import BotIntegrationRegistry

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    """What happened to one webhook delivery."""

    event_id: str
    event_type: str
    processing_result: ProcessingResult
    message: str | None = None
    integration_id: str | None = None
    telegram_user_id: str | None = None


class ProcessedEventStore:
    """Per-event claims and markers in ``<prefix>-processed-events``.

    A claim is a conditional put: it succeeds when no marker exists, when a
    previous claim was abandoned past its lease, or when a finished marker
    has outlived its TTL but not yet been reaped.
    """

    TABLE = "processed-events"

    CLAIM_CONDITION = (
        "attribute_not_exists(event_id)"
        " OR (processing_result = :processing AND lease_expires_at < :now)"
        " OR expires_at < :now"
    )

    def __init__(self, db: DynamoDBService, retention_seconds: int, lease_seconds: int) -> None:
        self._db = db
        self._retention_seconds = retention_seconds
        self._lease_seconds = lease_seconds

    def claim(self, event_id: str, event_type: str, payload_hash: str) -> bool:
        """Atomically take ownership of an event.

        Returns:
            True if this delivery should process the event
        """
        now = int(time.time())
        marker = ProcessedEventMarker(
            event_id=event_id,
            event_type=event_type,
            processed_at=dt.datetime.now(dt.UTC),
            payload_hash=payload_hash,
            processing_result=ProcessingResult.PROCESSING,
            expires_at=now + self._retention_seconds,
            lease_expires_at=now + self._lease_seconds,
        )
        return self._db.put_item(
            self.TABLE,
            marker.model_dump(mode="json", exclude_none=True),
            condition_expression=self.CLAIM_CONDITION,
            expression_attribute_values={
                ":processing": ProcessingResult.PROCESSING.value,
                ":now": now,
            },
        )

    def finalize(self, outcome: WebhookOutcome, payload_hash: str) -> None:
        """Replace the claim with a marker kept for the retention period."""
        marker = ProcessedEventMarker(
            event_id=outcome.event_id,
            event_type=outcome.event_type,
            processed_at=dt.datetime.now(dt.UTC),
            payload_hash=payload_hash,
            processing_result=outcome.processing_result,
            expires_at=int(time.time()) + self._retention_seconds,
            integration_id=outcome.integration_id,
            telegram_user_id=outcome.telegram_user_id,
            error_message=outcome.message,
        )
        self._db.put_item(self.TABLE, marker.model_dump(mode="json", exclude_none=True))

    def release(self, event_id: str) -> None:
        """Drop a claim so a redelivery is processed again."""
        self._db.delete_item(self.TABLE, {"event_id": event_id})

    def get(self, event_id: str) -> ProcessedEventMarker | None:
        item = self._db.get_item(self.TABLE, {"event_id": event_id}, consistent_read=True)
        return ProcessedEventMarker.model_validate(item) if item else None


def _metadata_value(metadata: Any, key: str) -> str | None:
    if not isinstance(metadata, dict):
        return None
    value = metadata.get(key)
    return str(value) if value not in (None, "") else None


class PaymentWebhookProcessor:
    """Verifies, deduplicates and dispatches Stripe webhook events."""

    def __init__(
        self,
        stripe_service: StripeService,
        registry: BotIntegrationRegistry,
        granter: ChannelAccessGranter,
        events: ProcessedEventStore,
    ) -> None:
        self._stripe = stripe_service
        self._registry = registry
        self._granter = granter
        self._events = events

    def parse_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the signature and return the event.

        Raises:
            PaygateError: INVALID_WEBHOOK_SIGNATURE for a missing header, missing
                signing secret or bad signature; INVALID_PAYLOAD for anything
                else that prevents reading the event.
        """
        if not signature:
            logger.warning("Webhook request missing Stripe-Signature header")
            raise PaygateError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                details={"message": "Missing Stripe-Signature header"},
            )
        if not self._stripe.webhook_configured:
            logger.error("Stripe webhook signing secret is not configured")
            raise PaygateError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                details={"message": "Webhook signing secret not configured"},
            )

        try:
            event = self._stripe.verify_webhook(payload, signature)
        except WebhookSignatureError as e:
            raise PaygateError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                details={"message": str(e)},
            ) from e
        except Exception as e:
            logger.error("Stripe webhook could not be read: %s", e)
            raise PaygateError(ErrorCode.INVALID_PAYLOAD, details={"message": str(e)}) from e

        if not event.get("id") or not event.get("type"):
            raise PaygateError(
                ErrorCode.INVALID_PAYLOAD,
                details={"message": "Event is missing id or type"},
            )
        return event

    def process(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Handle one webhook delivery end to end."""
        event = self.parse_event(payload, signature)
        event_id = event["id"]
        event_type = event["type"]
        payload_hash = StripeService.compute_payload_hash(payload)

        log_webhook_event(logger, event_type, event_id, result="received")

        if not self._events.claim(event_id, event_type, payload_hash):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result=ProcessingResult.DUPLICATE,
                message="Event already processed",
            )

        try:
            outcome = self.dispatch(event)
        except Exception as e:
            log_webhook_event(logger, event_type, event_id, result="error", error=str(e))
            self._events.release(event_id)
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result=ProcessingResult.ERROR,
                message=str(e),
            )

        self._events.finalize(outcome, payload_hash)
        log_webhook_event(
            logger,
            event_type,
            event_id,
            integration_id=outcome.integration_id,
            telegram_user_id=outcome.telegram_user_id,
            result=outcome.processing_result.value,
            error=outcome.message if outcome.processing_result is ProcessingResult.ERROR else None,
        )
        return outcome

    def dispatch(self, event: dict[str, Any]) -> WebhookOutcome:
        """Run the handler for an already verified and claimed event."""
        outcome = WebhookOutcome(
            event_id=event["id"],
            event_type=event["type"],
            processing_result=ProcessingResult.SKIPPED,
        )
        obj = (event.get("data") or {}).get("object") or {}

        event_type = StripeEventType.parse(event["type"])
        if event_type in (
            StripeEventType.SUBSCRIPTION_CREATED,
            StripeEventType.SUBSCRIPTION_UPDATED,
        ):
            self._handle_subscription(obj, outcome)
        elif event_type is StripeEventType.CHECKOUT_SESSION_COMPLETED:
            self._handle_checkout_completed(obj, outcome)
        elif event_type in (
            StripeEventType.INVOICE_PAID,
            StripeEventType.INVOICE_PAYMENT_SUCCEEDED,
        ):
            self._handle_invoice_paid(obj, outcome)
        else:
            outcome.message = f"Event type '{event['type']}' not handled"
        return outcome

    # Handlers

    def _handle_subscription(self, obj: dict[str, Any], outcome: WebhookOutcome) -> None:
        subscription = to_subscription(obj)
        if subscription.status != "active":
            outcome.message = f"Subscription status is '{subscription.status}', not 'active'"
            return

        user_id = _metadata_value(subscription.metadata, "telegram_user_id")
        chat_id = _metadata_value(subscription.metadata, "telegram_chat_id")
        if (not user_id or not chat_id) and subscription.customer_id:
            customer = self._stripe.retrieve_customer(subscription.customer_id)
            if customer:
                user_id = user_id or _metadata_value(customer.metadata, "telegram_user_id")
                chat_id = chat_id or _metadata_value(customer.metadata, "telegram_chat_id")

        self._grant(outcome, subscription.price_id, user_id, chat_id)

    def _handle_checkout_completed(self, obj: dict[str, Any], outcome: WebhookOutcome) -> None:
        # Subscription checkouts are granted through subscription/invoice events
        if obj.get("mode") != "payment" or obj.get("payment_status") != "paid":
            outcome.message = (
                f"Checkout mode '{obj.get('mode')}' with payment status "
                f"'{obj.get('payment_status')}' is not a paid one-time payment"
            )
            return

        metadata = obj.get("metadata") or {}
        user_id = _metadata_value(metadata, "telegram_user_id")
        if not user_id:
            outcome.message = "Missing telegram_user_id in metadata"
            return

        price_id = self._stripe.first_line_item_price_id(obj["id"])
        self._grant(outcome, price_id, user_id, _metadata_value(metadata, "telegram_chat_id"))

    def _handle_invoice_paid(self, obj: dict[str, Any], outcome: WebhookOutcome) -> None:
        if not (obj.get("paid") is True or obj.get("status") == "paid"):
            outcome.message = "Invoice is not paid"
            return

        parent_details = (obj.get("parent") or {}).get("subscription_details") or {}
        first_line = ((obj.get("lines") or {}).get("data") or [{}])[0]
        sources = [
            (obj.get("subscription_details") or {}).get("metadata"),
            parent_details.get("metadata"),
            obj.get("metadata"),
            first_line.get("metadata"),
        ]

        def lookup(key: str) -> str | None:
            for metadata in sources:
                value = _metadata_value(metadata, key)
                if value:
                    return value
            return None

        user_id = lookup("telegram_user_id")
        chat_id = lookup("telegram_chat_id")
        if not user_id:
            outcome.message = "Missing telegram_user_id in invoice metadata"
            return

        subscription_id = obj.get("subscription") or parent_details.get("subscription")
        if isinstance(subscription_id, dict):
            subscription_id = subscription_id.get("id")
        if not subscription_id:
            outcome.message = "Invoice has no subscription"
            return

        subscription = self._stripe.retrieve_subscription(subscription_id)
        if subscription.status != "active":
            outcome.message = f"Subscription status is '{subscription.status}', not 'active'"
            return

        chat_id = chat_id or _metadata_value(subscription.metadata, "telegram_chat_id")
        self._grant(outcome, subscription.price_id, user_id, chat_id)

    def _grant(
        self,
        outcome: WebhookOutcome,
        price_id: str | None,
        user_id: str | None,
        chat_id: str | None,
    ) -> None:
        outcome.telegram_user_id = user_id
        if not user_id:
            outcome.message = "No Telegram user found for event"
            return
        if not price_id:
            outcome.message = "No price found for event"
            return

        integration = self._registry.resolve_by_price(price_id)
        if integration is None:
            outcome.message = f"No active bot integration sells price {price_id}"
            return

        outcome.integration_id = integration.integration_id
        result = self._granter.grant(integration, user_id, chat_id)
        if result is AccessOutcome.FAILED:
            outcome.processing_result = ProcessingResult.ERROR
            outcome.message = "Channel access grant failed"
        else:
            outcome.processing_result = ProcessingResult.SUCCESS
            outcome.message = None
