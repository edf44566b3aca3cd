"""Stripe implementation of the BillingProvider protocol.

Uses the async Stripe SDK (create_async / retrieve_async). Every call is
bounded by an explicit timeout; a timeout is reported like any other provider
failure and says nothing about whether the remote object was created.
"""

import asyncio
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any

import stripe
import structlog

from app.billing.provider import (
    BillingCustomer,
    BillingError,
    BillingErrorKind,
    BillingResult,
    CreatedSubscription,
    SubscriptionSnapshot,
)
from app.core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

# Stripe statuses that are meaningful to the caller; everything else becomes 502
_PASSTHROUGH_STATUSES = {400, 402, 404, 409, 429}


def read_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject, plain dict, or attribute-style object.

    StripeObject is read by key: newer SDKs no longer subclass dict, and names
    like ``items`` collide with mapping methods under attribute access.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    if isinstance(obj, stripe.StripeObject):
        try:
            return obj[key]
        except KeyError:
            return default
    return getattr(obj, key, default)


def to_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), UTC)


def period_bounds(subscription: Any) -> tuple[datetime | None, datetime | None]:
    """Subscription period, falling back to the first item (newer API versions moved it there)."""
    start = read_field(subscription, "current_period_start")
    end = read_field(subscription, "current_period_end")
    if start is None or end is None:
        items = read_field(read_field(subscription, "items"), "data") or []
        if items:
            start = start or read_field(items[0], "current_period_start")
            end = end or read_field(items[0], "current_period_end")
    return to_datetime(start), to_datetime(end)


def to_billing_error(exc: stripe.StripeError) -> BillingError:
    """Map a Stripe SDK exception onto the provider-neutral BillingError."""
    code = getattr(exc, "code", None)
    http_status = getattr(exc, "http_status", None)
    message = getattr(exc, "user_message", None) or str(exc) or type(exc).__name__

    if code == "resource_missing":
        kind = BillingErrorKind.RESOURCE_MISSING
    elif isinstance(exc, stripe.CardError):
        kind = BillingErrorKind.CARD_ERROR
    elif isinstance(exc, stripe.InvalidRequestError):
        kind = BillingErrorKind.INVALID_REQUEST
    else:
        kind = BillingErrorKind.API_ERROR

    status_code = http_status if http_status in _PASSTHROUGH_STATUSES else 502
    return BillingError(kind=kind, message=message, status_code=status_code, code=code)


class StripeBillingProvider:
    """BillingProvider backed by the Stripe API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.timeout = self.settings.stripe_timeout_seconds

    def _configure(self) -> BillingError | None:
        """Configure the stripe module; report NOT_CONFIGURED when no key is set."""
        if not self.settings.stripe_secret_key:
            return BillingError(
                kind=BillingErrorKind.NOT_CONFIGURED,
                message="Billing is not configured",
                status_code=503,
            )
        stripe.api_key = self.settings.stripe_secret_key
        stripe.api_version = self.settings.stripe_api_version
        stripe.max_network_retries = self.settings.stripe_max_network_retries
        return None

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        """Await a Stripe call under the configured timeout, normalizing failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError:
            logger.warning("stripe_call_timeout", operation=operation, timeout_seconds=self.timeout)
            return BillingError(
                kind=BillingErrorKind.TIMEOUT,
                message="Billing provider did not respond in time. Please retry.",
                status_code=504,
            )
        except stripe.StripeError as exc:
            error = to_billing_error(exc)
            logger.warning(
                "stripe_call_failed",
                operation=operation,
                kind=error.kind.value,
                code=error.code,
                status_code=error.status_code,
                error=error.message,
            )
            return error

    async def create_customer(
        self, email: str | None, name: str | None, metadata: dict[str, str]
    ) -> BillingResult[BillingCustomer]:
        error = self._configure()
        if error is not None:
            return BillingResult.failure(error)

        outcome = await self._call(
            "customer_create",
            stripe.Customer.create_async(email=email, name=name or email, metadata=metadata),
        )
        if isinstance(outcome, BillingError):
            return BillingResult.failure(outcome)

        logger.info("stripe_customer_created", customer_id=read_field(outcome, "id"), user_id=metadata.get("user_id"))
        return BillingResult.success(
            BillingCustomer(id=read_field(outcome, "id"), email=email, name=name, metadata=dict(metadata))
        )

    async def create_subscription(
        self, customer_id: str, price_id: str, metadata: dict[str, str]
    ) -> BillingResult[CreatedSubscription]:
        error = self._configure()
        if error is not None:
            return BillingResult.failure(error)

        outcome = await self._call(
            "subscription_create",
            stripe.Subscription.create_async(
                customer=customer_id,
                items=[{"price": price_id}],
                payment_behavior="default_incomplete",
                payment_settings={"save_default_payment_method": "on_subscription"},
                expand=["latest_invoice.payment_intent", "pending_setup_intent"],
                metadata=metadata,
            ),
        )
        if isinstance(outcome, BillingError):
            return BillingResult.failure(outcome)

        subscription_id = read_field(outcome, "id")
        client_secret = await self._extract_client_secret(outcome)
        if not client_secret:
            logger.error("stripe_client_secret_missing", subscription_id=subscription_id)
            return BillingResult.failure(
                BillingError(
                    kind=BillingErrorKind.API_ERROR,
                    message="Could not retrieve a client secret for payment setup from the subscription.",
                    status_code=502,
                )
            )

        period_start, period_end = period_bounds(outcome)
        return BillingResult.success(
            CreatedSubscription(
                subscription_id=subscription_id,
                status=read_field(outcome, "status"),
                client_secret=client_secret,
                period_start=period_start,
                period_end=period_end,
            )
        )

    async def _extract_client_secret(self, subscription: Any) -> str | None:
        """Client secret from the latest invoice's payment intent, else the pending setup intent.

        Zero-amount first invoices (trials) have no payment intent; Stripe
        hands out a setup intent instead.
        """
        invoice = read_field(subscription, "latest_invoice")
        payment_intent = read_field(invoice, "payment_intent") if not isinstance(invoice, str) else None

        if isinstance(payment_intent, str):
            outcome = await self._call("payment_intent_retrieve", stripe.PaymentIntent.retrieve_async(payment_intent))
            payment_intent = None if isinstance(outcome, BillingError) else outcome

        secret = read_field(payment_intent, "client_secret")
        if secret:
            return secret

        setup_intent = read_field(subscription, "pending_setup_intent")
        if setup_intent is not None and not isinstance(setup_intent, str):
            return read_field(setup_intent, "client_secret")
        return None

    async def retrieve_subscription(self, subscription_id: str) -> BillingResult[SubscriptionSnapshot]:
        error = self._configure()
        if error is not None:
            return BillingResult.failure(error)

        outcome = await self._call(
            "subscription_retrieve",
            stripe.Subscription.retrieve_async(subscription_id, expand=["items.data.price.product"]),
        )
        if isinstance(outcome, BillingError):
            return BillingResult.failure(outcome)

        items = read_field(read_field(outcome, "items"), "data") or []
        price = read_field(items[0], "price") if items else None
        product = read_field(price, "product")
        period_start, period_end = period_bounds(outcome)

        return BillingResult.success(
            SubscriptionSnapshot(
                subscription_id=read_field(outcome, "id"),
                status=read_field(outcome, "status"),
                period_start=period_start,
                period_end=period_end,
                cancel_at_period_end=bool(read_field(outcome, "cancel_at_period_end", False)),
                price_id=read_field(price, "id"),
                product_name=read_field(product, "name") if not isinstance(product, str) else None,
            )
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> BillingResult[str]:
        error = self._configure()
        if error is not None:
            return BillingResult.failure(error)

        outcome = await self._call(
            "portal_session_create",
            stripe.billing_portal.Session.create_async(customer=customer_id, return_url=return_url),
        )
        if isinstance(outcome, BillingError):
            return BillingResult.failure(outcome)
        return BillingResult.success(read_field(outcome, "url"))
