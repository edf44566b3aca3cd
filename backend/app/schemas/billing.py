"""Billing Pydantic schemas: subscription status, intents, portal."""

from datetime import datetime

from pydantic import BaseModel, Field


class SubscriptionStatusView(BaseModel):
    """Normalized subscription status; the inactive shape doubles as "no subscription"."""

    active: bool
    status: str | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool | None = None
    subscription_id: str | None = None
    product_name: str | None = None
    price_id: str | None = None

    @classmethod
    def inactive(cls) -> "SubscriptionStatusView":
        return cls(active=False)


class CreateSubscriptionRequest(BaseModel):
    price_id: str | None = Field(default=None, min_length=1, max_length=255)


class SubscriptionIntentResponse(BaseModel):
    client_secret: str | None = None
    subscription_id: str


class PortalRequest(BaseModel):
    return_url: str | None = Field(default=None, max_length=2048)


class PortalResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool = True
