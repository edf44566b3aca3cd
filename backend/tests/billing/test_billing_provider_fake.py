"""Tests for BillingProviderFake scenario-based test double."""

import pytest

from app.billing.provider import BillingErrorKind, BillingProvider
from app.billing.provider_fake import BillingProviderFake

pytestmark = pytest.mark.unit


def test_fake_satisfies_protocol():
    assert isinstance(BillingProviderFake(), BillingProvider)


def test_unknown_scenario_rejected():
    with pytest.raises(ValueError, match="Unknown scenario"):
        BillingProviderFake(scenario="chaos")


async def test_happy_path_creates_incomplete_subscription_with_secret():
    fake = BillingProviderFake()
    customer = await fake.create_customer("jane@x.com", "Jane Doe", {"user_id": "user_1"})
    assert customer.ok
    assert customer.value.metadata == {"user_id": "user_1"}

    result = await fake.create_subscription(customer.value.id, "price_basic", {"user_id": "user_1"})

    assert result.ok
    assert result.value.status == "incomplete"
    assert result.value.client_secret
    assert fake.subscriptions[result.value.subscription_id]["customer_id"] == customer.value.id


async def test_set_status_is_visible_on_retrieve():
    fake = BillingProviderFake()
    created = await fake.create_subscription("cus_1", "price_basic", {})
    fake.set_status(created.value.subscription_id, "active")

    snapshot = await fake.retrieve_subscription(created.value.subscription_id)

    assert snapshot.ok
    assert snapshot.value.status == "active"
    assert snapshot.value.price_id == "price_basic"


@pytest.mark.parametrize(
    "scenario,kind,status_code",
    [
        ("provider_down", BillingErrorKind.API_ERROR, 502),
        ("timeout", BillingErrorKind.TIMEOUT, 504),
    ],
)
async def test_blanket_failures(scenario, kind, status_code):
    fake = BillingProviderFake(scenario=scenario)
    for result in (
        await fake.create_customer("jane@x.com", "Jane", {}),
        await fake.create_subscription("cus_1", "price_basic", {}),
        await fake.retrieve_subscription("sub_1"),
        await fake.create_portal_session("cus_1", "https://app.test"),
    ):
        assert not result.ok
        assert result.error.kind == kind
        assert result.error.status_code == status_code


async def test_subscription_failure_is_a_card_decline():
    fake = BillingProviderFake(scenario="subscription_failure")
    assert (await fake.create_customer("jane@x.com", "Jane", {})).ok

    result = await fake.create_subscription("cus_1", "price_basic", {})

    assert result.error.kind == BillingErrorKind.CARD_ERROR
    assert result.error.status_code == 402
    assert result.error.code == "card_declined"


async def test_unknown_subscription_is_resource_missing():
    result = await BillingProviderFake().retrieve_subscription("sub_gone")
    assert result.error.is_resource_missing
    assert result.error.status_code == 404
