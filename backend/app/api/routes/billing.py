"""Billing routes: subscription status, subscription create, Customer Portal, webhooks."""

import stripe
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.routes.onboarding import get_billing_synchronizer, get_onboarding_service
from app.billing.stripe_provider import read_field
from app.core.auth import ClerkUser, require_auth, require_onboarding_complete
from app.core.config import get_settings
from app.schemas.billing import (
    CreateSubscriptionRequest,
    PortalRequest,
    PortalResponse,
    SubscriptionIntentResponse,
    SubscriptionStatusView,
    WebhookAck,
)
from app.services.billing_sync import BillingSynchronizer
from app.services.onboarding_service import OnboardingService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/subscriptions/status", response_model=SubscriptionStatusView)
async def get_subscription_status(
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Return live subscription status; no subscription reads as inactive."""
    return await service.get_subscription_status(user.user_id)


@router.post("/subscriptions/create", response_model=SubscriptionIntentResponse)
async def create_subscription(
    body: CreateSubscriptionRequest,
    user: ClerkUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Create an incomplete subscription, defaulting to the configured membership price."""
    price_id = body.price_id or get_settings().stripe_default_price_id
    if not price_id:
        raise HTTPException(status_code=400, detail="Price ID is required")
    return await service.create_subscription(user.user_id, price_id)


@router.post("/subscriptions/portal", response_model=PortalResponse)
async def create_portal_session(
    body: PortalRequest,
    user: ClerkUser = Depends(require_onboarding_complete),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Create a Customer Portal session and return its URL."""
    return_url = body.return_url or f"{get_settings().frontend_url}/dashboard"
    url = await service.create_portal_session(user.user_id, return_url)
    return PortalResponse(url=url)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    synchronizer: BillingSynchronizer = Depends(get_billing_synchronizer),
):
    """Handle Stripe webhook events with signature verification.

    Every verified event is acknowledged with 200, including unknown types and
    events for customers this service does not track.
    """
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        logger.error("stripe_webhook_secret_missing")
        raise HTTPException(status_code=503, detail="Stripe webhook endpoint is not configured")

    body = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")

    try:
        event = stripe.Webhook.construct_event(body, sig_header, settings.stripe_webhook_secret)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("stripe_webhook_signature_invalid")
        raise HTTPException(status_code=400, detail="Invalid signature")

    logger.info("stripe_webhook_received", event_type=read_field(event, "type"), event_id=read_field(event, "id"))
    outcome = await synchronizer.handle_event(event)
    logger.info("stripe_webhook_processed", event_type=read_field(event, "type"), outcome=outcome)

    return WebhookAck(received=True)
