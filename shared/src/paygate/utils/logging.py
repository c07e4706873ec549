"""Logging with per-request correlation IDs.

The API middleware stores the inbound ``X-Correlation-ID`` (or a fresh one)
in a context variable. Every record emitted through :func:`get_logger` is
prefixed with it, so a Telegram update or Stripe delivery can be followed
across services in CloudWatch with a single grep.

The ``log_*`` helpers emit one line per business operation. Their context is
attached as record attributes and repeated as ``key=value`` pairs in the
message.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if needed."""
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` from the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes every formatted line with ``[correlation_id]``."""

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None) or get_correlation_id() or NO_CORRELATION_ID
        record.correlation_id = cid
        return f"[{cid}] {super().format(record)}"


def get_logger(name: str) -> logging.Logger:
    """``logging.getLogger`` with the correlation filter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Send root logging to stderr through the structured formatter."""
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _emit(logger: logging.Logger, level: int, title: str, context: dict[str, Any]) -> None:
    """Log ``title | k=v | ...`` with the non-empty context as record extras."""
    fields = {k: v for k, v in context.items() if v is not None and v != ""}
    parts = [title, *(f"{k}={v}" for k, v in fields.items())]
    logger.log(level, " | ".join(parts), extra=fields)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    integration_id: str | None = None,
    telegram_user_id: str | int | None = None,
    price_id: str | None = None,
    customer_id: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one Stripe-facing operation; ERROR when ``error`` is given."""
    context = {
        "integration_id": integration_id,
        "telegram_user_id": None if telegram_user_id is None else str(telegram_user_id),
        "price_id": price_id,
        "customer_id": customer_id,
        "status": status,
        "error": error,
        **extra,
    }
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        f"Payment operation: {operation}",
        {"operation": operation, **context},
    )


_WEBHOOK_LEVELS = {
    "error": logging.ERROR,
    "duplicate": logging.WARNING,
    "skipped": logging.WARNING,
}


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    integration_id: str | None = None,
    telegram_user_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a Stripe event step.

    ``error`` results log at ERROR, ``duplicate`` and ``skipped`` at WARNING,
    anything else at INFO.
    """
    context = {
        "event_type": event_type,
        "event_id": event_id,
        "result": result,
        "integration": integration_id,
        "telegram_user_id": telegram_user_id,
        "error": error,
        **extra,
    }
    _emit(
        logger,
        _WEBHOOK_LEVELS.get(result or "", logging.INFO),
        f"Webhook event: {event_type} ({event_id})",
        context,
    )


def log_access_grant(
    logger: logging.Logger,
    integration_id: str,
    telegram_user_id: int,
    outcome: str,
    *,
    error: str | None = None,
) -> None:
    """The single outcome line of a channel access attempt."""
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        "Channel access grant",
        {
            "integration": integration_id,
            "telegram_user_id": str(telegram_user_id),
            "outcome": outcome,
            "error": error,
        },
    )
