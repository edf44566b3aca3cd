"""Tests for exception-to-response mapping, startup config checks and log redaction."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.billing.provider import BillingError, BillingErrorKind
from app.core.config import Settings
from app.core.exceptions import (
    BillingAbortError,
    BillingCustomerMissingError,
    OnboardingRecordNotFoundError,
    StepSequenceError,
)
from app.core.logging import REDACTED, redact_sensitive
from app.domain.onboarding_steps import OnboardingStep
from app.main import register_exception_handlers, validate_stripe_config

pytestmark = pytest.mark.unit


def _client_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


class TestOnboardingErrorMapping:
    def test_step_sequence_error(self):
        response = _client_raising(
            StepSequenceError("Please complete basic information first", next_step=OnboardingStep.BASIC_INFO)
        ).get("/boom")

        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Please complete basic information first"
        assert body["next_step"] == "basic_info"
        assert body["debug_id"]

    def test_billing_abort_keeps_provider_status(self):
        error = BillingError(kind=BillingErrorKind.CARD_ERROR, message="Your card was declined.", status_code=402, code="card_declined")

        response = _client_raising(BillingAbortError(error, "subscription_create")).get("/boom")

        assert response.status_code == 402
        assert response.json()["code"] == "card_declined"

    def test_billing_abort_without_code_uses_kind(self):
        error = BillingError(kind=BillingErrorKind.NOT_CONFIGURED, message="Billing is not configured.", status_code=503)

        response = _client_raising(BillingAbortError(error, "customer_create")).get("/boom")

        assert response.status_code == 503
        assert response.json()["code"] == "not_configured"

    def test_missing_customer_is_400(self):
        response = _client_raising(BillingCustomerMissingError("user_1")).get("/boom")
        assert response.status_code == 400

    def test_missing_record_is_404(self):
        response = _client_raising(OnboardingRecordNotFoundError("user_1")).get("/boom")
        assert response.status_code == 404
        assert "user_1" not in response.text

    def test_unhandled_error_is_generic_500(self):
        response = _client_raising(RuntimeError("db password=hunter2")).get("/boom")

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"
        assert "hunter2" not in response.text


class TestValidateStripeConfig:
    def test_skipped_in_debug(self):
        with patch("app.main.get_settings", return_value=Settings(debug=True, stripe_secret_key="")):
            validate_stripe_config()

    def test_missing_keys_fail_fast(self):
        with patch("app.main.get_settings", return_value=Settings(debug=False, stripe_secret_key="", stripe_webhook_secret="whsec_x")):
            with pytest.raises(RuntimeError, match="stripe_secret_key"):
                validate_stripe_config()

    def test_configured_passes(self):
        settings = Settings(debug=False, stripe_secret_key="sk_test_1", stripe_webhook_secret="whsec_x")
        with patch("app.main.get_settings", return_value=settings):
            validate_stripe_config()


class TestRedactSensitive:
    def test_masks_top_level_secret(self):
        event = redact_sensitive(None, "info", {"event": "x", "client_secret": "pi_1_secret_2", "user_id": "u"})
        assert event["client_secret"] == REDACTED
        assert event["user_id"] == "u"

    def test_masks_one_level_deep(self):
        event = redact_sensitive(None, "info", {"event": "x", "intent": {"client_secret": "pi_secret", "id": "pi_1"}})
        assert event["intent"] == {"client_secret": REDACTED, "id": "pi_1"}

    def test_empty_values_left_alone(self):
        event = redact_sensitive(None, "info", {"event": "x", "token": None})
        assert event["token"] is None
