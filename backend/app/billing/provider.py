"""BillingProvider Protocol: the boundary between onboarding and the payment provider.

Every provider call returns a BillingResult instead of raising, so each call
site states up front what a failure means for it (BillingErrorPolicy):

- WARN_AND_CONTINUE: opportunistic side effect, log and move on
- ABORT_TRANSITION: the external call is the point of the operation, surface it

Implementations:
- StripeBillingProvider (app.billing.stripe_provider) for production
- BillingProviderFake (app.billing.provider_fake) for tests and local dev
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


class BillingErrorKind(str, Enum):
    API_ERROR = "api_error"
    CARD_ERROR = "card_error"
    INVALID_REQUEST = "invalid_request"
    RESOURCE_MISSING = "resource_missing"
    TIMEOUT = "timeout"
    NOT_CONFIGURED = "not_configured"


class BillingErrorPolicy(str, Enum):
    WARN_AND_CONTINUE = "warn_and_continue"
    ABORT_TRANSITION = "abort_transition"


@dataclass(frozen=True)
class BillingError:
    """Normalized provider failure."""

    kind: BillingErrorKind
    message: str
    status_code: int = 502
    code: str | None = None

    @property
    def is_resource_missing(self) -> bool:
        return self.kind == BillingErrorKind.RESOURCE_MISSING


@dataclass(frozen=True)
class BillingResult(Generic[T]):
    """Either a value or a BillingError, never both."""

    value: T | None = None
    error: BillingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "BillingResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BillingError) -> "BillingResult[T]":
        return cls(error=error)


@dataclass(frozen=True)
class BillingCustomer:
    id: str
    email: str | None = None
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CreatedSubscription:
    """Provider response to a default_incomplete subscription create."""

    subscription_id: str
    status: str
    client_secret: str | None
    period_start: datetime | None = None
    period_end: datetime | None = None


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Live subscription state with its price and product."""

    subscription_id: str
    status: str
    period_start: datetime | None
    period_end: datetime | None
    cancel_at_period_end: bool
    price_id: str | None
    product_name: str | None


@runtime_checkable
class BillingProvider(Protocol):
    """Operations consumed from the billing provider."""

    async def create_customer(
        self, email: str | None, name: str | None, metadata: dict[str, str]
    ) -> BillingResult[BillingCustomer]:
        """Create a customer tagged with metadata (user_id is how webhooks correlate back)."""
        ...

    async def create_subscription(
        self, customer_id: str, price_id: str, metadata: dict[str, str]
    ) -> BillingResult[CreatedSubscription]:
        """Create a single-item subscription in the incomplete state.

        The returned client_secret is confirmed client-side before the
        subscription becomes active.
        """
        ...

    async def retrieve_subscription(self, subscription_id: str) -> BillingResult[SubscriptionSnapshot]:
        """Fetch a subscription with price and product.

        Fails with RESOURCE_MISSING when the subscription no longer exists.
        """
        ...

    async def create_portal_session(self, customer_id: str, return_url: str) -> BillingResult[str]:
        """Create a customer portal session and return its URL."""
        ...
