"""BillingProviderFake: Scenario-based test double for the BillingProvider protocol.

Provides deterministic, instant responses for named scenarios:
- happy_path: every call succeeds; subscriptions start incomplete
- provider_down: every call fails with a 502 api_error
- customer_failure: customer creation fails, everything else succeeds
- subscription_failure: subscription creation is declined (402 card_error)
- subscription_missing: retrieve reports the subscription no longer exists
- timeout: every call times out (504)

Calls are recorded so tests can assert on what reached the provider.
"""

from datetime import UTC, datetime, timedelta
from itertools import count

from app.billing.provider import (
    BillingCustomer,
    BillingError,
    BillingErrorKind,
    BillingResult,
    CreatedSubscription,
    SubscriptionSnapshot,
)

_PROVIDER_DOWN = BillingError(
    kind=BillingErrorKind.API_ERROR,
    message="Billing provider is temporarily unavailable.",
    status_code=502,
)
_TIMEOUT = BillingError(
    kind=BillingErrorKind.TIMEOUT,
    message="Billing provider did not respond in time. Please retry.",
    status_code=504,
)


class BillingProviderFake:
    """Scenario-based test double for BillingProvider."""

    VALID_SCENARIOS = {
        "happy_path",
        "provider_down",
        "customer_failure",
        "subscription_failure",
        "subscription_missing",
        "timeout",
    }

    def __init__(self, scenario: str = "happy_path"):
        """Initialize BillingProviderFake with a named scenario.

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.customers: list[BillingCustomer] = []
        self.subscriptions: dict[str, dict] = {}
        self.portal_sessions: list[tuple[str, str]] = []
        self._ids = count(1)

    def _blanket_failure(self) -> BillingError | None:
        if self.scenario == "provider_down":
            return _PROVIDER_DOWN
        if self.scenario == "timeout":
            return _TIMEOUT
        return None

    def set_status(self, subscription_id: str, status: str) -> None:
        """Move a fake subscription to a new status (what a client-side confirm would do)."""
        self.subscriptions[subscription_id]["status"] = status

    async def create_customer(
        self, email: str | None, name: str | None, metadata: dict[str, str]
    ) -> BillingResult[BillingCustomer]:
        error = self._blanket_failure()
        if error is not None:
            return BillingResult.failure(error)
        if self.scenario == "customer_failure":
            return BillingResult.failure(_PROVIDER_DOWN)

        customer = BillingCustomer(id=f"cus_fake_{next(self._ids)}", email=email, name=name, metadata=dict(metadata))
        self.customers.append(customer)
        return BillingResult.success(customer)

    async def create_subscription(
        self, customer_id: str, price_id: str, metadata: dict[str, str]
    ) -> BillingResult[CreatedSubscription]:
        error = self._blanket_failure()
        if error is not None:
            return BillingResult.failure(error)
        if self.scenario == "subscription_failure":
            return BillingResult.failure(
                BillingError(
                    kind=BillingErrorKind.CARD_ERROR,
                    message="Your card was declined.",
                    status_code=402,
                    code="card_declined",
                )
            )

        n = next(self._ids)
        subscription_id = f"sub_fake_{n}"
        start = datetime(2026, 1, 1, tzinfo=UTC)
        self.subscriptions[subscription_id] = {
            "customer_id": customer_id,
            "price_id": price_id,
            "status": "incomplete",
            "period_start": start,
            "period_end": start + timedelta(days=30),
            "metadata": dict(metadata),
        }
        return BillingResult.success(
            CreatedSubscription(
                subscription_id=subscription_id,
                status="incomplete",
                client_secret=f"pi_fake_{n}_secret_{n}",
                period_start=start,
                period_end=start + timedelta(days=30),
            )
        )

    async def retrieve_subscription(self, subscription_id: str) -> BillingResult[SubscriptionSnapshot]:
        error = self._blanket_failure()
        if error is not None:
            return BillingResult.failure(error)
        sub = self.subscriptions.get(subscription_id)
        if self.scenario == "subscription_missing" or sub is None:
            return BillingResult.failure(
                BillingError(
                    kind=BillingErrorKind.RESOURCE_MISSING,
                    message=f"No such subscription: '{subscription_id}'",
                    status_code=404,
                    code="resource_missing",
                )
            )
        return BillingResult.success(
            SubscriptionSnapshot(
                subscription_id=subscription_id,
                status=sub["status"],
                period_start=sub["period_start"],
                period_end=sub["period_end"],
                cancel_at_period_end=False,
                price_id=sub["price_id"],
                product_name="Concierge Membership",
            )
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> BillingResult[str]:
        error = self._blanket_failure()
        if error is not None:
            return BillingResult.failure(error)
        self.portal_sessions.append((customer_id, return_url))
        return BillingResult.success(f"https://billing.example.test/session/{customer_id}")
