"""Unit tests for PaymentWebhookProcessor and ProcessedEventStore.

Signature verification is mocked here; the contract tests cover real
signatures end to end.
"""

import json
from unittest.mock import MagicMock

import pytest

from paygate.models.billing import Customer, Subscription
from paygate.models.enums import AccessOutcome, ProcessingResult
from paygate.models.errors import ErrorCode, PaygateError
from paygate.services.channel_access import ChannelAccessGranter
from paygate.services.stripe_service import StripeServiceError, WebhookSignatureError
from paygate.services.tenant_registry import BotIntegrationRegistry
from paygate.services.webhook_handler import PaymentWebhookProcessor, ProcessedEventStore
from tests.helpers import event, subscription_object

TELEGRAM_METADATA = {"telegram_user_id": "7", "telegram_chat_id": "9"}


@pytest.fixture
def events(db):
    return ProcessedEventStore(db, retention_seconds=86400, lease_seconds=300)


@pytest.fixture
def registry_mock(integration):
    registry = MagicMock(spec=BotIntegrationRegistry)
    registry.resolve_by_price.return_value = integration
    return registry


@pytest.fixture
def granter():
    granter = MagicMock(spec=ChannelAccessGranter)
    granter.grant.return_value = AccessOutcome.ADDED
    return granter


@pytest.fixture
def processor(stripe_mock, registry_mock, granter, events):
    return PaymentWebhookProcessor(stripe_mock, registry_mock, granter, events)


def deliver(processor, stripe_mock, evt):
    """Run one delivery with signature verification stubbed out."""
    stripe_mock.verify_webhook.return_value = evt
    return processor.process(json.dumps(evt).encode(), "t=1,v1=stub")


def paid_invoice(**overrides):
    invoice = {
        "id": "in_1",
        "object": "invoice",
        "status": "paid",
        "parent": {
            "type": "subscription_details",
            "subscription_details": {"subscription": "sub_123", "metadata": TELEGRAM_METADATA},
        },
        "lines": {"data": [{"id": "il_1", "metadata": {}}]},
    }
    invoice.update(overrides)
    return invoice


def paid_checkout(**overrides):
    session = {
        "id": "cs_1",
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
        "metadata": TELEGRAM_METADATA,
    }
    session.update(overrides)
    return session


class TestSubscriptionEvents:
    @pytest.mark.parametrize("event_type", ["customer.subscription.created", "customer.subscription.updated"])
    def test_active_subscription_grants_access(
        self, processor, stripe_mock, granter, registry_mock, integration, events, event_type
    ):
        evt = event(event_type, subscription_object(metadata=TELEGRAM_METADATA))

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SUCCESS
        assert outcome.integration_id == integration.integration_id
        registry_mock.resolve_by_price.assert_called_once_with("price_monthly")
        granter.grant.assert_called_once_with(integration, "7", "9")
        marker = events.get(evt["id"])
        assert marker.processing_result is ProcessingResult.SUCCESS
        assert marker.telegram_user_id == "7"

    def test_inactive_subscription_skipped(self, processor, stripe_mock, granter):
        evt = event("customer.subscription.updated", subscription_object(status="incomplete"))

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SKIPPED
        assert "incomplete" in outcome.message
        granter.grant.assert_not_called()

    def test_metadata_falls_back_to_customer(self, processor, stripe_mock, granter, integration):
        stripe_mock.retrieve_customer.return_value = Customer(id="cus_123", metadata=TELEGRAM_METADATA)
        evt = event("customer.subscription.created", subscription_object())

        outcome = deliver(processor, stripe_mock, evt)

        stripe_mock.retrieve_customer.assert_called_once_with("cus_123")
        assert outcome.processing_result is ProcessingResult.SUCCESS
        granter.grant.assert_called_once_with(integration, "7", "9")

    def test_no_telegram_user_anywhere(self, processor, stripe_mock, granter):
        stripe_mock.retrieve_customer.return_value = Customer(id="cus_123")
        evt = event("customer.subscription.created", subscription_object())

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SKIPPED
        granter.grant.assert_not_called()


class TestCheckoutEvents:
    def test_paid_one_time_payment(self, processor, stripe_mock, granter, registry_mock, integration):
        stripe_mock.first_line_item_price_id.return_value = "price_lifetime"

        outcome = deliver(processor, stripe_mock, event("checkout.session.completed", paid_checkout()))

        assert outcome.processing_result is ProcessingResult.SUCCESS
        stripe_mock.first_line_item_price_id.assert_called_once_with("cs_1")
        registry_mock.resolve_by_price.assert_called_once_with("price_lifetime")
        granter.grant.assert_called_once_with(integration, "7", "9")

    def test_subscription_checkout_skipped(self, processor, stripe_mock, granter):
        evt = event("checkout.session.completed", paid_checkout(mode="subscription"))

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SKIPPED
        granter.grant.assert_not_called()

    def test_unpaid_checkout_skipped(self, processor, stripe_mock, granter):
        evt = event("checkout.session.completed", paid_checkout(payment_status="unpaid"))

        assert deliver(processor, stripe_mock, evt).processing_result is ProcessingResult.SKIPPED
        granter.grant.assert_not_called()

    def test_missing_telegram_user_is_a_no_op(self, processor, stripe_mock, granter, events):
        evt = event("checkout.session.completed", paid_checkout(metadata={}))

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SKIPPED
        assert outcome.message == "Missing telegram_user_id in metadata"
        stripe_mock.first_line_item_price_id.assert_not_called()
        granter.grant.assert_not_called()
        assert events.get(evt["id"]).processing_result is ProcessingResult.SKIPPED


class TestInvoiceEvents:
    @pytest.fixture(autouse=True)
    def active_subscription(self, stripe_mock):
        stripe_mock.retrieve_subscription.return_value = Subscription(
            id="sub_123", status="active", price_id="price_monthly", metadata=TELEGRAM_METADATA
        )

    @pytest.mark.parametrize("event_type", ["invoice.paid", "invoice.payment_succeeded"])
    def test_paid_invoice_grants_access(self, processor, stripe_mock, granter, integration, event_type):
        outcome = deliver(processor, stripe_mock, event(event_type, paid_invoice()))

        assert outcome.processing_result is ProcessingResult.SUCCESS
        stripe_mock.retrieve_subscription.assert_called_once_with("sub_123")
        granter.grant.assert_called_once_with(integration, "7", "9")

    def test_legacy_invoice_shape(self, processor, stripe_mock, granter, integration):
        invoice = paid_invoice(
            parent=None,
            status="open",
            paid=True,
            subscription="sub_123",
            subscription_details={"metadata": {"telegram_user_id": "7"}},
        )

        outcome = deliver(processor, stripe_mock, event("invoice.paid", invoice))

        assert outcome.processing_result is ProcessingResult.SUCCESS
        # Chat ID comes from the subscription's own metadata
        granter.grant.assert_called_once_with(integration, "7", "9")

    def test_metadata_on_line_item(self, processor, stripe_mock, granter, integration):
        invoice = paid_invoice(
            parent={"subscription_details": {"subscription": "sub_123"}},
            lines={"data": [{"id": "il_1", "metadata": {"telegram_user_id": "8"}}]},
        )

        deliver(processor, stripe_mock, event("invoice.paid", invoice))

        assert granter.grant.call_args.args[1] == "8"

    def test_unpaid_invoice_skipped(self, processor, stripe_mock, granter):
        outcome = deliver(processor, stripe_mock, event("invoice.paid", paid_invoice(status="open")))

        assert outcome.processing_result is ProcessingResult.SKIPPED
        stripe_mock.retrieve_subscription.assert_not_called()
        granter.grant.assert_not_called()

    def test_subscription_not_active(self, processor, stripe_mock, granter):
        stripe_mock.retrieve_subscription.return_value = Subscription(
            id="sub_123", status="past_due", price_id="price_monthly"
        )

        outcome = deliver(processor, stripe_mock, event("invoice.paid", paid_invoice()))

        assert outcome.processing_result is ProcessingResult.SKIPPED
        granter.grant.assert_not_called()

    def test_invoice_without_subscription(self, processor, stripe_mock, granter):
        invoice = paid_invoice(parent=None, subscription_details={"metadata": TELEGRAM_METADATA})

        outcome = deliver(processor, stripe_mock, event("invoice.paid", invoice))

        assert outcome.message == "Invoice has no subscription"
        granter.grant.assert_not_called()

    def test_price_not_sold_by_any_integration(self, processor, stripe_mock, registry_mock, granter):
        registry_mock.resolve_by_price.return_value = None

        outcome = deliver(processor, stripe_mock, event("invoice.paid", paid_invoice()))

        assert outcome.processing_result is ProcessingResult.SKIPPED
        assert "price_monthly" in outcome.message
        granter.grant.assert_not_called()

    def test_failed_grant_is_error_but_not_retried(self, processor, stripe_mock, granter, events):
        granter.grant.return_value = AccessOutcome.FAILED
        evt = event("invoice.paid", paid_invoice())

        first = deliver(processor, stripe_mock, evt)
        second = deliver(processor, stripe_mock, evt)

        assert first.processing_result is ProcessingResult.ERROR
        assert second.processing_result is ProcessingResult.DUPLICATE
        assert events.get(evt["id"]).processing_result is ProcessingResult.ERROR
        assert granter.grant.call_count == 1


class TestIdempotency:
    def test_replay_is_duplicate(self, processor, stripe_mock, granter):
        evt = event("customer.subscription.created", subscription_object(metadata=TELEGRAM_METADATA))

        first = deliver(processor, stripe_mock, evt)
        second = deliver(processor, stripe_mock, evt)

        assert first.processing_result is ProcessingResult.SUCCESS
        assert second.processing_result is ProcessingResult.DUPLICATE
        assert granter.grant.call_count == 1

    def test_distinct_events_both_processed(self, processor, stripe_mock, granter):
        obj = subscription_object(metadata=TELEGRAM_METADATA)

        deliver(processor, stripe_mock, event("customer.subscription.created", obj, event_id="evt_a"))
        deliver(processor, stripe_mock, event("customer.subscription.updated", obj, event_id="evt_b"))

        assert granter.grant.call_count == 2

    def test_handler_failure_releases_claim(self, processor, stripe_mock, granter, events):
        stripe_mock.first_line_item_price_id.side_effect = [
            StripeServiceError("connection reset"),
            "price_lifetime",
        ]
        evt = event("checkout.session.completed", paid_checkout())

        failed = deliver(processor, stripe_mock, evt)
        assert failed.processing_result is ProcessingResult.ERROR
        assert events.get(evt["id"]) is None

        retried = deliver(processor, stripe_mock, evt)
        assert retried.processing_result is ProcessingResult.SUCCESS
        assert granter.grant.call_count == 1

    def test_claim_in_progress_is_duplicate(self, processor, stripe_mock, granter, events):
        evt = event("customer.subscription.created", subscription_object(metadata=TELEGRAM_METADATA))
        assert events.claim(evt["id"], evt["type"], "hash")

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.DUPLICATE
        granter.grant.assert_not_called()

    def test_abandoned_claim_taken_over(self, db, processor, stripe_mock, granter, events):
        evt = event("customer.subscription.created", subscription_object(metadata=TELEGRAM_METADATA))
        stale = ProcessedEventStore(db, retention_seconds=86400, lease_seconds=-1)
        assert stale.claim(evt["id"], evt["type"], "hash")

        outcome = deliver(processor, stripe_mock, evt)

        assert outcome.processing_result is ProcessingResult.SUCCESS
        granter.grant.assert_called_once()

    def test_expired_marker_processed_again(self, db, stripe_mock, registry_mock, granter):
        short_lived = ProcessedEventStore(db, retention_seconds=-1, lease_seconds=300)
        processor = PaymentWebhookProcessor(stripe_mock, registry_mock, granter, short_lived)
        evt = event("customer.subscription.created", subscription_object(metadata=TELEGRAM_METADATA))

        deliver(processor, stripe_mock, evt)
        deliver(processor, stripe_mock, evt)

        assert granter.grant.call_count == 2

    def test_marker_keeps_payload_hash(self, processor, stripe_mock, events):
        evt = event("charge.refunded", {"id": "ch_1"})

        deliver(processor, stripe_mock, evt)

        marker = events.get(evt["id"])
        assert len(marker.payload_hash) == 64
        assert marker.lease_expires_at is None


class TestUnhandledEvents:
    def test_unhandled_type_acknowledged(self, processor, stripe_mock, granter):
        outcome = deliver(processor, stripe_mock, event("charge.refunded", {"id": "ch_1"}))

        assert outcome.processing_result is ProcessingResult.SKIPPED
        assert outcome.message == "Event type 'charge.refunded' not handled"
        granter.grant.assert_not_called()


class TestParseEvent:
    def test_missing_signature(self, processor):
        with pytest.raises(PaygateError) as exc_info:
            processor.process(b"{}", None)

        assert exc_info.value.code is ErrorCode.INVALID_WEBHOOK_SIGNATURE

    def test_secret_not_configured(self, processor, stripe_mock):
        stripe_mock.webhook_configured = False

        with pytest.raises(PaygateError) as exc_info:
            processor.process(b"{}", "t=1,v1=stub")

        assert exc_info.value.code is ErrorCode.INVALID_WEBHOOK_SIGNATURE
        stripe_mock.verify_webhook.assert_not_called()

    def test_bad_signature(self, processor, stripe_mock):
        stripe_mock.verify_webhook.side_effect = WebhookSignatureError("Invalid webhook signature")

        with pytest.raises(PaygateError) as exc_info:
            processor.process(b"{}", "t=1,v1=bad")

        assert exc_info.value.code is ErrorCode.INVALID_WEBHOOK_SIGNATURE

    def test_unreadable_body(self, processor, stripe_mock):
        stripe_mock.verify_webhook.side_effect = ValueError("Expecting value")

        with pytest.raises(PaygateError) as exc_info:
            processor.process(b"not json", "t=1,v1=stub")

        assert exc_info.value.code is ErrorCode.INVALID_PAYLOAD

    def test_event_without_id(self, processor, stripe_mock):
        stripe_mock.verify_webhook.return_value = {"type": "invoice.paid"}

        with pytest.raises(PaygateError) as exc_info:
            processor.process(b"{}", "t=1,v1=stub")

        assert exc_info.value.code is ErrorCode.INVALID_PAYLOAD
