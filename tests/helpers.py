"""Shared constants and builders for Paygate tests."""

import hashlib
import hmac
import json
import time
from typing import Any

REGION = "eu-west-1"
TABLE_PREFIX = "test-paygate"
DIGEST_KEY = "test-digest-key"
TEST_WEBHOOK_SECRET = "whsec_test_secret_for_testing"


def ok(result: Any = True) -> dict[str, Any]:
    """Telegram success envelope."""
    return {"ok": True, "result": result}


def not_ok(description: str = "Bad Request") -> dict[str, Any]:
    """Telegram failure envelope."""
    return {"ok": False, "error_code": 400, "description": description}


def stripe_signature(payload: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    """Create a valid Stripe webhook signature.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    timestamp = str(int(time.time()))
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def encode_event(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")


def subscription_object(
    subscription_id: str = "sub_123",
    status: str = "active",
    price_id: str = "price_monthly",
    customer: str = "cus_123",
    metadata: dict[str, str] | None = None,
    created: int = 1_700_000_000,
    **extra: Any,
) -> dict[str, Any]:
    """Stripe subscription as it appears in API responses and events."""
    obj: dict[str, Any] = {
        "id": subscription_id,
        "object": "subscription",
        "status": status,
        "customer": customer,
        "created": created,
        "cancel_at_period_end": False,
        "current_period_end": created + 30 * 24 * 3600,
        "cancel_at": None,
        "ended_at": None,
        "metadata": metadata if metadata is not None else {},
        "items": {"data": [{"id": "si_1", "price": {"id": price_id}}]},
    }
    obj.update(extra)
    return obj


def event(event_type: str, obj: dict[str, Any], event_id: str = "evt_1ABC123DEF456") -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": obj},
    }
