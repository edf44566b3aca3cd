"""Onboarding API routes: the four-step membership wizard."""

import structlog
from fastapi import APIRouter, Depends

from app.billing.provider import BillingProvider
from app.core.auth import ClerkUser, require_auth
from app.core.config import get_settings
from app.db.base import get_session_factory
from app.schemas.onboarding import (
    AdditionalDetailsInput,
    BasicInfoInput,
    OnboardingStatusResponse,
    OnboardingStepResponse,
    PaymentInput,
    PaymentResponse,
)
from app.services.billing_sync import BillingSynchronizer
from app.services.onboarding_repository import OnboardingRepository
from app.services.onboarding_service import OnboardingService

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_billing_provider() -> BillingProvider:
    """Dependency that provides the BillingProvider.

    Returns StripeBillingProvider when STRIPE_SECRET_KEY is set.
    Falls back to BillingProviderFake for local dev in debug mode; outside
    debug the Stripe provider is used anyway and reports itself unconfigured.
    Override this dependency in tests via app.dependency_overrides.
    """
    settings = get_settings()

    if settings.stripe_secret_key or not settings.debug:
        from app.billing.stripe_provider import StripeBillingProvider

        return StripeBillingProvider(settings)
    else:
        from app.billing.provider_fake import BillingProviderFake

        return BillingProviderFake()


def get_billing_synchronizer(provider: BillingProvider = Depends(get_billing_provider)) -> BillingSynchronizer:
    return BillingSynchronizer(provider, OnboardingRepository(get_session_factory()))


def get_onboarding_service(
    synchronizer: BillingSynchronizer = Depends(get_billing_synchronizer),
) -> OnboardingService:
    return OnboardingService(synchronizer.repository, synchronizer)


@router.get("/status", response_model=OnboardingStatusResponse)
async def get_onboarding_status(
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Return the stored step and the next step derived from saved data."""
    return await service.get_status(user.user_id)


@router.post("/user-info", response_model=OnboardingStepResponse)
async def submit_basic_info(
    body: BasicInfoInput,
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Step 1: save name, email, phone and company."""
    return await service.submit_basic_info(user.user_id, body)


@router.post("/additional-details", response_model=OnboardingStepResponse)
async def submit_additional_details(
    body: AdditionalDetailsInput,
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Step 2: save company context and goals.

    Raises:
        StepSequenceError (400): If step 1 is incomplete
    """
    return await service.submit_additional_details(user.user_id, body)


@router.post("/payment", response_model=PaymentResponse)
async def submit_payment(
    body: PaymentInput,
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Step 3: start an incomplete subscription and return its client secret.

    Raises:
        StepSequenceError (400): If step 1 or 2 is incomplete
        BillingAbortError (provider status): If the billing provider rejects the request
    """
    return await service.submit_payment(user.user_id, body)


@router.post("/complete", response_model=OnboardingStepResponse)
async def complete_onboarding(
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Step 4: mark onboarding complete once the subscription is active. Idempotent."""
    return await service.complete_onboarding(user.user_id)
