"""Tests for OnboardingRepository persistence rules."""

import pytest

from app.core.exceptions import OnboardingRecordNotFoundError
from app.core.provisioning import provision_user_on_first_login
from app.domain.onboarding_steps import OnboardingStep

pytestmark = pytest.mark.integration


async def test_get_or_create_is_idempotent(repository):
    first = await repository.get_or_create("user_1", email="jane@x.com")
    second = await repository.get_or_create("user_1", email="other@x.com")

    assert first.id == second.id
    assert second.email == "jane@x.com"
    assert second.current_step == OnboardingStep.NOT_STARTED.value
    assert second.onboarding_complete is False


async def test_update_missing_user_raises(repository):
    with pytest.raises(OnboardingRecordNotFoundError):
        await repository.update("user_missing", full_name="Nobody")


async def test_update_refuses_billing_customer_id(repository):
    await repository.get_or_create("user_1")
    with pytest.raises(ValueError):
        await repository.update("user_1", billing_customer_id="cus_overwrite")


async def test_claim_billing_customer_is_set_once(repository):
    await repository.get_or_create("user_1")

    assert await repository.claim_billing_customer_id("user_1", "cus_first") == "cus_first"
    assert await repository.claim_billing_customer_id("user_1", "cus_second") == "cus_first"

    record = await repository.get_by_billing_customer_id("cus_first")
    assert record.clerk_user_id == "user_1"
    assert await repository.get_by_billing_customer_id("cus_second") is None


async def test_claim_for_missing_user_raises(repository):
    with pytest.raises(OnboardingRecordNotFoundError):
        await repository.claim_billing_customer_id("user_missing", "cus_1")


async def test_provisioning_reads_email_and_admin_claims(repository):
    claims = {"sub": "user_admin", "email": "ops@x.com", "public_metadata": {"admin": True}}

    record = await provision_user_on_first_login("user_admin", claims, repository=repository)
    again = await provision_user_on_first_login("user_admin", claims, repository=repository)

    assert record.email == "ops@x.com"
    assert record.is_admin is True
    assert again.id == record.id
