"""Tests for per-step input validation."""

import pytest
from pydantic import ValidationError

from app.schemas.billing import SubscriptionStatusView
from app.schemas.onboarding import AdditionalDetailsInput, BasicInfoInput, PaymentInput

pytestmark = pytest.mark.unit


class TestBasicInfoInput:
    def test_valid_input_is_normalized(self):
        data = BasicInfoInput(full_name="  Jane Doe ", email=" Jane@X.com ", phone="555-0100", company_name="Acme")
        assert data.full_name == "Jane Doe"
        assert data.email == "jane@x.com"

    def test_rejects_bad_email(self):
        with pytest.raises(ValidationError) as exc_info:
            BasicInfoInput(full_name="Jane Doe", email="not-an-email", phone="555-0100", company_name="Acme")
        assert exc_info.value.errors()[0]["loc"] == ("email",)

    @pytest.mark.parametrize("email", ["jane@x..com", "jane@-x.com", "jane@x.com.", '"@x.com', "jane@@x.com"])
    def test_rejects_malformed_addresses(self, email):
        with pytest.raises(ValidationError) as exc_info:
            BasicInfoInput(full_name="Jane Doe", email=email, phone="555-0100", company_name="Acme")
        assert exc_info.value.errors()[0]["loc"] == ("email",)

    def test_rejects_bad_phone(self):
        with pytest.raises(ValidationError):
            BasicInfoInput(full_name="Jane Doe", email="jane@x.com", phone="call me", company_name="Acme")

    def test_rejects_whitespace_only_name(self):
        with pytest.raises(ValidationError):
            BasicInfoInput(full_name="     ", email="jane@x.com", phone="555-0100", company_name="Acme")

    def test_missing_field_is_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            BasicInfoInput(full_name="Jane Doe", email="jane@x.com", phone="555-0100")
        assert {"company_name"} == {err["loc"][0] for err in exc_info.value.errors()}


class TestAdditionalDetailsInput:
    def test_blank_goals_are_dropped(self):
        data = AdditionalDetailsInput(industry="Travel", company_size="1-10", role="Founder", goals=["Events", "  "])
        assert data.goals == ["Events"]
        assert data.referral_source is None

    def test_empty_goals_rejected(self):
        with pytest.raises(ValidationError):
            AdditionalDetailsInput(industry="Travel", company_size="1-10", role="Founder", goals=[])

    def test_only_blank_goals_rejected(self):
        with pytest.raises(ValidationError):
            AdditionalDetailsInput(industry="Travel", company_size="1-10", role="Founder", goals=["", " "])

    def test_blank_referral_source_becomes_none(self):
        data = AdditionalDetailsInput(
            industry="Travel", company_size="1-10", role="Founder", goals=["Events"], referral_source="  "
        )
        assert data.referral_source is None


class TestPaymentInput:
    def test_price_id_required(self):
        with pytest.raises(ValidationError):
            PaymentInput(price_id="")
        with pytest.raises(ValidationError):
            PaymentInput(price_id="   ")

    def test_price_id_stripped(self):
        assert PaymentInput(price_id=" price_basic ").price_id == "price_basic"


def test_inactive_subscription_shape():
    view = SubscriptionStatusView.inactive()
    assert view.model_dump() == {
        "active": False,
        "status": None,
        "current_period_end": None,
        "cancel_at_period_end": None,
        "subscription_id": None,
        "product_name": None,
        "price_id": None,
    }
