"""OnboardingService: the four-step onboarding state machine.

Responsibilities:
- Step ordering: each transition checks the earlier steps' data before writing
- One write per transition (the eager billing customer at step 2 is the only extra)
- Billing failure policy per call site (warn at step 2, abort at step 3)
- Next-step derivation from field population via app.domain.onboarding_steps

The user is always passed explicitly; nothing here reads request state.
"""

import structlog

from app.billing.provider import BillingErrorPolicy, BillingResult
from app.core.exceptions import (
    BillingAbortError,
    BillingCustomerMissingError,
    StepSequenceError,
)
from app.db.models.user_onboarding import UserOnboarding
from app.domain.onboarding_steps import (
    OnboardingStep,
    advance_step,
    derive_next_step,
    first_failing_precondition,
    has_additional_details,
    has_basic_info,
    stored_step,
)
from app.metrics.cloudwatch import emit_business_event
from app.schemas.billing import SubscriptionIntentResponse, SubscriptionStatusView
from app.schemas.onboarding import (
    AdditionalDetailsInput,
    BasicInfoInput,
    OnboardingProfile,
    OnboardingStatusResponse,
    OnboardingStepResponse,
    PaymentInput,
    PaymentResponse,
)
from app.services.billing_sync import BillingSynchronizer
from app.services.onboarding_repository import OnboardingRepository

logger = structlog.get_logger(__name__)

_SEQUENCE_MESSAGES = {
    OnboardingStep.BASIC_INFO: "Please complete basic information first",
    OnboardingStep.ADDITIONAL_DETAILS: "Please complete additional details first",
    OnboardingStep.PAYMENT: "Active subscription required to complete onboarding. Please complete payment.",
}


def _sequence_error(step: OnboardingStep) -> StepSequenceError:
    return StepSequenceError(_SEQUENCE_MESSAGES[step], next_step=step)


class OnboardingService:
    """Service layer for the onboarding flow."""

    def __init__(self, repository: OnboardingRepository, synchronizer: BillingSynchronizer):
        self.repository = repository
        self.synchronizer = synchronizer

    async def _load(self, user_id: str) -> UserOnboarding:
        # Normally provisioned at first authentication; recreate if it went missing
        return await self.repository.get_or_create(user_id)

    def _settle(self, result: BillingResult, policy: BillingErrorPolicy, operation: str, user_id: str):
        """Apply the call site's failure policy to a billing result.

        Returns the value on success, None on a tolerated failure.

        Raises:
            BillingAbortError: On failure under ABORT_TRANSITION
        """
        if result.ok:
            return result.value

        if policy == BillingErrorPolicy.WARN_AND_CONTINUE:
            logger.warning(
                "billing_side_effect_failed",
                operation=operation,
                user_id=user_id,
                kind=result.error.kind.value,
                error=result.error.message,
            )
            return None

        logger.warning(
            "billing_transition_aborted",
            operation=operation,
            user_id=user_id,
            kind=result.error.kind.value,
            code=result.error.code,
            status_code=result.error.status_code,
        )
        raise BillingAbortError(result.error, operation)

    async def get_status(self, user_id: str) -> OnboardingStatusResponse:
        """Stored pointer plus the next step re-derived from field population."""
        record = await self._load(user_id)
        return OnboardingStatusResponse(
            current_step=stored_step(record),
            next_step=derive_next_step(record),
            profile=OnboardingProfile.model_validate(record),
        )

    async def submit_basic_info(self, user_id: str, data: BasicInfoInput) -> OnboardingStepResponse:
        """Step 1. Always allowed; resubmission overwrites the four fields."""
        record = await self._load(user_id)
        record = await self.repository.update(
            user_id,
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            company_name=data.company_name,
            current_step=advance_step(stored_step(record), OnboardingStep.BASIC_INFO).value,
        )
        logger.info("onboarding_basic_info_saved", user_id=user_id)
        return OnboardingStepResponse(
            profile=OnboardingProfile.model_validate(record),
            next_step=OnboardingStep.ADDITIONAL_DETAILS,
        )

    async def submit_additional_details(self, user_id: str, data: AdditionalDetailsInput) -> OnboardingStepResponse:
        """Step 2. Requires step 1; eagerly creates the billing customer.

        The customer is a side effect: a provider failure is logged and the
        step still succeeds. Payment creates it later if it is still missing.

        Raises:
            StepSequenceError: If step 1 is incomplete
        """
        record = await self._load(user_id)
        if not has_basic_info(record):
            raise _sequence_error(OnboardingStep.BASIC_INFO)

        record = await self.repository.update(
            user_id,
            industry=data.industry,
            company_size=data.company_size,
            role=data.role,
            goals=data.goals,
            referral_source=data.referral_source,
            current_step=advance_step(stored_step(record), OnboardingStep.ADDITIONAL_DETAILS).value,
        )
        logger.info("onboarding_additional_details_saved", user_id=user_id)

        if not record.billing_customer_id:
            result = await self.synchronizer.create_customer(user_id, record.email, record.full_name)
            if self._settle(result, BillingErrorPolicy.WARN_AND_CONTINUE, "customer_create", user_id):
                record = await self._load(user_id)

        return OnboardingStepResponse(
            profile=OnboardingProfile.model_validate(record),
            next_step=OnboardingStep.PAYMENT,
        )

    async def submit_payment(self, user_id: str, data: PaymentInput) -> PaymentResponse:
        """Step 3. Creates an incomplete subscription for client-side confirmation.

        Both the customer and the subscription are on the critical path, so
        either failure aborts with the provider's error. current_step is not
        touched here; it moves once the provider confirms the subscription.

        Raises:
            StepSequenceError: If step 1 or step 2 is incomplete (step 1 reported first)
            BillingAbortError: If the billing provider rejects either call
        """
        record = await self._load(user_id)
        if not has_basic_info(record):
            raise _sequence_error(OnboardingStep.BASIC_INFO)
        if not has_additional_details(record):
            raise _sequence_error(OnboardingStep.ADDITIONAL_DETAILS)

        if not record.billing_customer_id:
            result = await self.synchronizer.create_customer(user_id, record.email, record.full_name)
            self._settle(result, BillingErrorPolicy.ABORT_TRANSITION, "customer_create", user_id)
            record = await self._load(user_id)

        result = await self.synchronizer.create_subscription(record, data.price_id)
        intent = self._settle(result, BillingErrorPolicy.ABORT_TRANSITION, "subscription_create", user_id)

        return PaymentResponse(
            client_secret=intent.client_secret,
            subscription_id=intent.subscription_id,
            next_step=OnboardingStep.COMPLETED,
        )

    async def complete_onboarding(self, user_id: str) -> OnboardingStepResponse:
        """Step 4. Idempotent: a completed record is returned unchanged.

        Raises:
            StepSequenceError: For the first failing precondition, in step order
        """
        record = await self._load(user_id)
        if not record.onboarding_complete:
            failing = first_failing_precondition(record)
            if failing is not None:
                raise _sequence_error(failing)

            record = await self.repository.update(
                user_id,
                onboarding_complete=True,
                current_step=OnboardingStep.COMPLETED.value,
            )
            logger.info("onboarding_completed", user_id=user_id)
            await emit_business_event("onboarding_completed", user_id=user_id)

        return OnboardingStepResponse(
            profile=OnboardingProfile.model_validate(record),
            next_step=OnboardingStep.COMPLETED,
        )

    async def get_subscription_status(self, user_id: str) -> SubscriptionStatusView:
        """Raises BillingAbortError when the provider fails for a reason other than a missing subscription."""
        record = await self._load(user_id)
        result = await self.synchronizer.get_subscription_status(record)
        return self._settle(result, BillingErrorPolicy.ABORT_TRANSITION, "subscription_status", user_id)

    async def create_subscription(self, user_id: str, price_id: str) -> SubscriptionIntentResponse:
        """Standalone subscription create for members outside the wizard.

        Raises:
            BillingAbortError: If the billing provider rejects the request
        """
        record = await self._load(user_id)
        result = await self.synchronizer.create_subscription(record, price_id)
        intent = self._settle(result, BillingErrorPolicy.ABORT_TRANSITION, "subscription_create", user_id)
        return SubscriptionIntentResponse(client_secret=intent.client_secret, subscription_id=intent.subscription_id)

    async def create_portal_session(self, user_id: str, return_url: str) -> str:
        """Raises BillingCustomerMissingError when the user has no billing customer yet."""
        record = await self._load(user_id)
        if not record.billing_customer_id:
            raise BillingCustomerMissingError(user_id)
        result = await self.synchronizer.create_customer_portal_session(record.billing_customer_id, return_url)
        return self._settle(result, BillingErrorPolicy.ABORT_TRANSITION, "portal_session_create", user_id)
