"""Stripe webhook event marker for idempotency and auditing."""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ProcessingResult


class ProcessedEventMarker(BaseModel):
    """Record of a received Stripe webhook event.

    Used for:
    - Idempotency: a handled event ID is not handled again while the marker lives
    - Auditing: track deliveries and what they led to
    """

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["invoice.paid", "checkout.session.completed"],
    )
    processed_at: datetime = Field(
        ...,
        description="When the event was claimed or finished",
    )
    payload_hash: str = Field(
        ...,
        description="SHA-256 hash of payload",
        examples=["a1b2c3d4e5f6..."],
    )
    processing_result: ProcessingResult = Field(
        default=ProcessingResult.SUCCESS,
        description="processing while claimed, then success, skipped or error",
    )
    expires_at: int = Field(
        ...,
        description="Epoch seconds when DynamoDB TTL removes the marker",
    )
    lease_expires_at: int | None = Field(
        default=None,
        description="Epoch seconds after which an unfinished claim may be taken over",
    )
    integration_id: str | None = Field(
        default=None,
        description="Bot integration access was granted for",
    )
    telegram_user_id: str | None = Field(
        default=None,
        description="Telegram user extracted from metadata",
    )
    error_message: str | None = Field(
        default=None,
        description="Why the event was skipped or failed",
    )
