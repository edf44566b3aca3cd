"""BillingSynchronizer: keeps the local subscription mirror in step with the provider.

Outbound: customer and subscription creation, live status reads, portal
sessions. Inbound: webhook events routed to handlers keyed by event type.

Every outbound call returns a BillingResult; the caller decides whether a
failure aborts its transition. Webhook handlers never create records: an event
for an unknown customer is logged and acknowledged.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from app.billing.provider import BillingProvider, BillingResult
from app.billing.stripe_provider import period_bounds, read_field, to_datetime
from app.db.models.user_onboarding import UserOnboarding
from app.domain.onboarding_steps import OnboardingStep, SubscriptionStatus, has_active_subscription, stored_step
from app.metrics.cloudwatch import emit_business_event
from app.schemas.billing import SubscriptionStatusView
from app.services.onboarding_repository import OnboardingRepository

logger = structlog.get_logger(__name__)

SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
PAYMENT_FAILED = "invoice.payment_failed"

# Outcomes reported by handle_event
APPLIED = "applied"
IGNORED = "ignored"
UNMATCHED = "unmatched"
STALE = "stale"
ACKNOWLEDGED = "acknowledged"


@dataclass(frozen=True)
class SubscriptionIntent:
    """What the client needs to confirm payment for a new subscription."""

    client_secret: str | None
    subscription_id: str
    status: str


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _customer_id(obj: Any) -> str | None:
    """Customer reference on a subscription or invoice: an ID string or an expanded object."""
    customer = read_field(obj, "customer")
    if customer is None or isinstance(customer, str):
        return customer
    return read_field(customer, "id")


class BillingSynchronizer:
    """Outbound billing calls plus the inbound webhook reconciler."""

    def __init__(self, provider: BillingProvider, repository: OnboardingRepository):
        self.provider = provider
        self.repository = repository
        self._handlers = {
            SUBSCRIPTION_CREATED: self._on_subscription_created,
            SUBSCRIPTION_UPDATED: self._on_subscription_updated,
            SUBSCRIPTION_DELETED: self._on_subscription_deleted,
            PAYMENT_SUCCEEDED: self._on_payment_succeeded,
            PAYMENT_FAILED: self._on_payment_failed,
        }

    # ── Outbound ────────────────────────────────────────────────────

    async def create_customer(self, user_id: str, email: str | None, name: str | None) -> BillingResult[str]:
        """Create a provider customer tagged with user_id and store its ID.

        Not idempotent on its own: callers check billing_customer_id first.
        Returns the ID actually stored, which is the earlier one if a
        concurrent request already claimed the slot.
        """
        result = await self.provider.create_customer(email=email, name=name, metadata={"user_id": user_id})
        if not result.ok:
            logger.warning(
                "billing_customer_create_failed",
                user_id=user_id,
                kind=result.error.kind.value,
                error=result.error.message,
            )
            return BillingResult.failure(result.error)

        stored_id = await self.repository.claim_billing_customer_id(user_id, result.value.id)
        logger.info("billing_customer_linked", user_id=user_id, customer_id=stored_id)
        return BillingResult.success(stored_id)

    async def create_subscription(self, record: UserOnboarding, price_id: str) -> BillingResult[SubscriptionIntent]:
        """Create an incomplete subscription and mirror it locally in one write.

        Creates the billing customer first when the record has none.
        current_step is left alone: the step advances once the provider
        reports the subscription active. A record that already has an active
        subscription gets that one back, with no client secret and no
        provider call.
        """
        user_id = record.clerk_user_id
        if has_active_subscription(record):
            logger.info("subscription_already_active", user_id=user_id, subscription_id=record.subscription_id)
            return BillingResult.success(
                SubscriptionIntent(
                    client_secret=None,
                    subscription_id=record.subscription_id,
                    status=record.subscription_status,
                )
            )

        customer_id = record.billing_customer_id
        if not customer_id:
            customer = await self.create_customer(user_id, record.email, record.full_name)
            if not customer.ok:
                return BillingResult.failure(customer.error)
            customer_id = customer.value

        result = await self.provider.create_subscription(
            customer_id=customer_id, price_id=price_id, metadata={"user_id": user_id}
        )
        if not result.ok:
            logger.warning(
                "subscription_create_failed",
                user_id=user_id,
                customer_id=customer_id,
                kind=result.error.kind.value,
                code=result.error.code,
                error=result.error.message,
            )
            return BillingResult.failure(result.error)

        created = result.value
        fields = {
            "subscription_id": created.subscription_id,
            "subscription_status": created.status,
            "subscription_period_start": created.period_start,
            "subscription_period_end": created.period_end,
            "subscription_cancel_at_period_end": False,
        }
        await self.repository.update(user_id, **fields)

        logger.info(
            "subscription_created",
            user_id=user_id,
            subscription_id=created.subscription_id,
            status=created.status,
        )
        await emit_business_event("subscription_created", user_id=user_id)

        return BillingResult.success(
            SubscriptionIntent(
                client_secret=created.client_secret,
                subscription_id=created.subscription_id,
                status=created.status,
            )
        )

    async def get_subscription_status(self, record: UserOnboarding) -> BillingResult[SubscriptionStatusView]:
        """Live subscription status; a missing subscription reads as inactive, not as an error."""
        if not record.subscription_id:
            return BillingResult.success(SubscriptionStatusView.inactive())

        result = await self.provider.retrieve_subscription(record.subscription_id)
        if not result.ok:
            if result.error.is_resource_missing:
                logger.info(
                    "subscription_missing_at_provider",
                    user_id=record.clerk_user_id,
                    subscription_id=record.subscription_id,
                )
                return BillingResult.success(SubscriptionStatusView.inactive())
            return BillingResult.failure(result.error)

        snapshot = result.value
        return BillingResult.success(
            SubscriptionStatusView(
                active=snapshot.status == SubscriptionStatus.ACTIVE.value,
                status=snapshot.status,
                current_period_end=snapshot.period_end,
                cancel_at_period_end=snapshot.cancel_at_period_end,
                subscription_id=snapshot.subscription_id,
                product_name=snapshot.product_name,
                price_id=snapshot.price_id,
            )
        )

    async def create_customer_portal_session(self, customer_id: str, return_url: str) -> BillingResult[str]:
        return await self.provider.create_portal_session(customer_id=customer_id, return_url=return_url)

    # ── Inbound ─────────────────────────────────────────────────────

    async def handle_event(self, event: Mapping[str, Any]) -> str:
        """Apply a verified webhook event to the local mirror.

        Returns one of APPLIED, IGNORED (unknown type, or a subscription other
        than the mirrored one), UNMATCHED (no record
        for the customer), STALE (older than the last applied event) or
        ACKNOWLEDGED (logged, nothing to write). Database failures propagate
        so the provider retries delivery.
        """
        event_type = read_field(event, "type")
        data = read_field(read_field(event, "data"), "object")
        handler = self._handlers.get(event_type)

        if handler is None:
            logger.info("stripe_webhook_ignored", event_type=event_type, event_id=read_field(event, "id"))
            return IGNORED

        customer_id = _customer_id(data)
        record = await self.repository.get_by_billing_customer_id(customer_id) if customer_id else None
        if record is None:
            logger.warning(
                "stripe_webhook_unmatched_customer",
                event_type=event_type,
                event_id=read_field(event, "id"),
                customer_id=customer_id,
            )
            return UNMATCHED

        return await handler(record, data, to_datetime(read_field(event, "created")))

    def _is_stale(self, record: UserOnboarding, event_at: datetime | None) -> bool:
        last_applied = _as_utc(record.subscription_event_at)
        return event_at is not None and last_applied is not None and event_at < last_applied

    def _is_other_subscription(self, record: UserOnboarding, subscription: Any) -> bool:
        """True when the event is about a subscription other than the one mirrored on the record."""
        stored = record.subscription_id
        return bool(stored) and read_field(subscription, "id") != stored

    def _ignore_other(self, event_type: str, record: UserOnboarding, subscription: Any) -> str:
        logger.info(
            "stripe_webhook_other_subscription",
            event_type=event_type,
            user_id=record.clerk_user_id,
            subscription_id=read_field(subscription, "id"),
            mirrored_subscription_id=record.subscription_id,
        )
        return IGNORED

    def _subscription_fields(self, record: UserOnboarding, subscription: Any, event_at: datetime | None) -> dict:
        period_start, period_end = period_bounds(subscription)
        status = read_field(subscription, "status")
        fields = {
            "subscription_status": status,
            "subscription_period_start": period_start,
            "subscription_period_end": period_end,
            "subscription_cancel_at_period_end": bool(read_field(subscription, "cancel_at_period_end", False)),
            "subscription_event_at": event_at,
        }
        # Provider-confirmed payment is what moves the pointer past step 2
        if status == SubscriptionStatus.ACTIVE.value and stored_step(record) == OnboardingStep.ADDITIONAL_DETAILS:
            fields["current_step"] = OnboardingStep.PAYMENT.value
        return fields

    async def _on_subscription_created(self, record: UserOnboarding, subscription: Any, event_at: datetime | None) -> str:
        if self._is_stale(record, event_at):
            logger.info("stripe_webhook_stale", event_type=SUBSCRIPTION_CREATED, user_id=record.clerk_user_id)
            return STALE
        if self._is_other_subscription(record, subscription) and has_active_subscription(record):
            return self._ignore_other(SUBSCRIPTION_CREATED, record, subscription)

        fields = self._subscription_fields(record, subscription, event_at)
        fields["subscription_id"] = read_field(subscription, "id")
        await self.repository.update(record.clerk_user_id, **fields)
        logger.info(
            "subscription_mirrored",
            event_type=SUBSCRIPTION_CREATED,
            user_id=record.clerk_user_id,
            subscription_id=fields["subscription_id"],
            status=fields["subscription_status"],
        )
        return APPLIED

    async def _on_subscription_updated(self, record: UserOnboarding, subscription: Any, event_at: datetime | None) -> str:
        if self._is_stale(record, event_at):
            logger.info("stripe_webhook_stale", event_type=SUBSCRIPTION_UPDATED, user_id=record.clerk_user_id)
            return STALE
        if self._is_other_subscription(record, subscription):
            return self._ignore_other(SUBSCRIPTION_UPDATED, record, subscription)

        fields = self._subscription_fields(record, subscription, event_at)
        await self.repository.update(record.clerk_user_id, **fields)
        logger.info(
            "subscription_status_updated",
            user_id=record.clerk_user_id,
            status=fields["subscription_status"],
            cancel_at_period_end=fields["subscription_cancel_at_period_end"],
        )
        return APPLIED

    async def _on_subscription_deleted(self, record: UserOnboarding, subscription: Any, event_at: datetime | None) -> str:
        """Mark canceled; subscription_id and onboarding_complete are left alone."""
        if self._is_stale(record, event_at):
            logger.info("stripe_webhook_stale", event_type=SUBSCRIPTION_DELETED, user_id=record.clerk_user_id)
            return STALE
        if self._is_other_subscription(record, subscription):
            return self._ignore_other(SUBSCRIPTION_DELETED, record, subscription)

        await self.repository.update(
            record.clerk_user_id,
            subscription_status=SubscriptionStatus.CANCELED.value,
            subscription_event_at=event_at,
        )
        logger.info("subscription_canceled", user_id=record.clerk_user_id, subscription_id=read_field(subscription, "id"))
        await emit_business_event("subscription_cancelled", user_id=record.clerk_user_id)
        return APPLIED

    async def _on_payment_succeeded(self, record: UserOnboarding, invoice: Any, event_at: datetime | None) -> str:
        paid_at = to_datetime(read_field(read_field(invoice, "status_transitions"), "paid_at"))
        await self.repository.update(
            record.clerk_user_id,
            last_payment_at=paid_at or event_at or datetime.now(UTC),
        )
        logger.info("invoice_payment_recorded", user_id=record.clerk_user_id, invoice_id=read_field(invoice, "id"))
        return APPLIED

    async def _on_payment_failed(self, record: UserOnboarding, invoice: Any, event_at: datetime | None) -> str:
        # Status changes arrive separately as customer.subscription.updated
        logger.warning(
            "invoice_payment_failed",
            user_id=record.clerk_user_id,
            invoice_id=read_field(invoice, "id"),
            attempt_count=read_field(invoice, "attempt_count"),
        )
        return ACKNOWLEDGED
