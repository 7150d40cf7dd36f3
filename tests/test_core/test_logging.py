"""Tests for log redaction, request correlation and performance logging."""

from unittest.mock import MagicMock

import pytest
import structlog

from courier.core.logging import (
    REDACTED,
    clear_context,
    get_request_id,
    log_performance,
    redact_sensitive,
    set_request_id,
    set_user_id,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_context()
    yield
    clear_context()


def test_redacts_credentials_at_any_depth():
    event = {
        "event": "Calling gateway",
        "Authorization": "Bearer sk_live_x",
        "body": {"email": "ada@example.com", "amount": 500, "items": [{"phone": "0803"}]},
        "reference": "PAY-1",
    }

    redacted = redact_sensitive(None, "info", event)

    assert redacted["Authorization"] == REDACTED
    assert redacted["body"]["email"] == REDACTED
    assert redacted["body"]["items"][0]["phone"] == REDACTED
    assert redacted["body"]["amount"] == 500
    assert redacted["reference"] == "PAY-1"


def test_request_id_is_bound_to_context():
    assert set_request_id("req-1") == "req-1"
    set_user_id("user-1")

    context = structlog.contextvars.get_contextvars()
    assert context == {"request_id": "req-1", "user_id": "user-1"}
    assert get_request_id() == "req-1"

    clear_context()
    assert get_request_id() is None


@pytest.mark.parametrize("supplied", [None, "", "   "])
def test_request_id_is_generated_when_missing(supplied):
    request_id = set_request_id(supplied)

    assert len(request_id) == 36


def test_performance_logger_reports_failures():
    logger = MagicMock()

    with pytest.raises(ValueError):
        with log_performance(logger, "verify_payment", reference="PAY-1"):
            raise ValueError("boom")

    kwargs = logger.error.call_args.kwargs
    assert kwargs["operation"] == "verify_payment"
    assert kwargs["error_type"] == "ValueError"
    assert kwargs["reference"] == "PAY-1"


def test_performance_logger_reports_completion():
    logger = MagicMock()

    with log_performance(logger, "accept_bid"):
        pass

    assert logger.info.call_args.kwargs["slow"] is False
