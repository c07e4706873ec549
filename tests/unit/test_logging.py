"""Unit tests for correlation IDs and structured log helpers."""

import logging

import pytest

from paygate.utils.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_access_grant,
    log_payment_operation,
    log_webhook_event,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_correlation():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestCorrelationId:
    def test_generated_when_missing(self):
        cid = set_correlation_id()

        assert cid
        assert get_correlation_id() == cid

    def test_existing_kept(self):
        set_correlation_id("corr-1")

        assert get_correlation_id() == "corr-1"

    def test_formatter_prefixes_id(self):
        set_correlation_id("corr-2")
        record = logging.LogRecord("paygate", logging.INFO, __file__, 1, "hello", None, None)

        assert StructuredFormatter("%(message)s").format(record) == "[corr-2] hello"

    def test_get_logger_adds_filter_once(self):
        logger = get_logger("paygate.test.filters")
        get_logger("paygate.test.filters")

        assert sum(isinstance(f, CorrelationIdFilter) for f in logger.filters) == 1


class TestStructuredHelpers:
    def test_webhook_levels(self, caplog):
        logger = logging.getLogger("paygate.test.webhook")

        with caplog.at_level(logging.INFO, logger="paygate.test.webhook"):
            log_webhook_event(logger, "invoice.paid", "evt_1", result="success", integration_id="bot_1")
            log_webhook_event(logger, "invoice.paid", "evt_1", result="duplicate")
            log_webhook_event(logger, "invoice.paid", "evt_2", result="error", error="boom")

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.INFO, logging.WARNING, logging.ERROR]
        assert "integration=bot_1" in caplog.records[0].getMessage()
        assert caplog.records[2].error == "boom"

    def test_payment_operation_context(self, caplog):
        logger = logging.getLogger("paygate.test.payment")

        with caplog.at_level(logging.INFO, logger="paygate.test.payment"):
            log_payment_operation(logger, "start_checkout", telegram_user_id=7, price_id="price_a", status="created")

        record = caplog.records[0]
        assert record.telegram_user_id == "7"
        assert "price_id=price_a" in record.getMessage()

    def test_access_grant_failure_is_error(self, caplog):
        logger = logging.getLogger("paygate.test.access")

        with caplog.at_level(logging.INFO, logger="paygate.test.access"):
            log_access_grant(logger, "bot_1", 7, "failed", error="timeout")

        assert caplog.records[0].levelno == logging.ERROR
        assert caplog.records[0].outcome == "failed"
