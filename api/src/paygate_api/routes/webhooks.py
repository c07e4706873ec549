"""Stripe webhook endpoint.

Stripe signs each delivery with the account's webhook secret, so the route
itself is unauthenticated. Every accepted event is answered with 200, including
duplicates and event types the processor ignores, which stops Stripe from
redelivering them.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from paygate.models.errors import ErrorResponse
from paygate.services.webhook_handler import PaymentWebhookProcessor
from paygate.utils.logging import get_logger
from paygate_api.dependencies import get_webhook_processor

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # success | duplicate | skipped | error
    message: str | None = None


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Grants channel access when one of these events reports a payment:
- `customer.subscription.created` / `customer.subscription.updated` (active subscription)
- `checkout.session.completed` (paid one-time checkout)
- `invoice.paid` / `invoice.payment_succeeded` (paid renewal)

Events are deduplicated by ID: a redelivery returns 200 with `duplicate`.
""",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Signed body is not a Stripe event", "model": ErrorResponse},
        403: {"description": "Missing or invalid Stripe-Signature", "model": ErrorResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    processor: PaymentWebhookProcessor = Depends(get_webhook_processor),
) -> WebhookResponse:
    """Verify, deduplicate and process one Stripe event."""
    body = await request.body()
    logger.debug("Stripe delivery of %d bytes", len(body))
    outcome = await run_in_threadpool(
        processor.process, body, request.headers.get("Stripe-Signature")
    )
    return WebhookResponse(
        received=True,
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processing_result=outcome.processing_result.value,
        message=outcome.message,
    )
