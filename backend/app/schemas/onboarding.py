"""Onboarding Pydantic schemas: per-step inputs and API responses.

Each transition has its own input model; bodies are validated into these
before the state machine sees them, so a rejected request never writes.
"""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.domain.onboarding_steps import OnboardingStep

_PHONE_RE = re.compile(r"^\+?[0-9][0-9\s().-]{3,}$")


def _strip_required(v: str, label: str) -> str:
    stripped = v.strip()
    if not stripped:
        raise ValueError(f"{label} cannot be empty or whitespace-only")
    return stripped


class BasicInfoInput(BaseModel):
    """Step 1: who the member is."""

    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=50)
    company_name: str = Field(..., min_length=2, max_length=255)

    @field_validator("full_name", "company_name")
    @classmethod
    def reject_whitespace_only(cls, v: str) -> str:
        return _strip_required(v, "Value")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = v.strip()
        if not _PHONE_RE.match(v):
            raise ValueError("Valid phone number is required")
        return v


class AdditionalDetailsInput(BaseModel):
    """Step 2: company context and goals."""

    industry: str = Field(..., min_length=2, max_length=255)
    company_size: str = Field(..., min_length=1, max_length=50)
    role: str = Field(..., min_length=2, max_length=255)
    goals: list[str] = Field(..., min_length=1, max_length=20)
    referral_source: str | None = Field(default=None, max_length=255)

    @field_validator("industry", "company_size", "role")
    @classmethod
    def reject_whitespace_only(cls, v: str) -> str:
        return _strip_required(v, "Value")

    @field_validator("goals")
    @classmethod
    def clean_goals(cls, v: list[str]) -> list[str]:
        """Drop blank entries; at least one real goal must remain."""
        goals = [g.strip() for g in v if g and g.strip()]
        if not goals:
            raise ValueError("At least one goal is required")
        return goals

    @field_validator("referral_source")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class PaymentInput(BaseModel):
    """Step 3: the membership price to subscribe to."""

    price_id: str = Field(..., min_length=1, max_length=255)

    @field_validator("price_id")
    @classmethod
    def reject_whitespace_only(cls, v: str) -> str:
        return _strip_required(v, "Price ID")


class OnboardingProfile(BaseModel):
    """Client-facing view of a UserOnboarding record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    industry: str | None = None
    company_size: str | None = None
    role: str | None = None
    goals: list[str] | None = None
    referral_source: str | None = None
    current_step: OnboardingStep
    onboarding_complete: bool
    billing_customer_id: str | None = None
    subscription_id: str | None = None
    subscription_status: str | None = None
    subscription_period_end: datetime | None = None
    is_admin: bool = False


class OnboardingStatusResponse(BaseModel):
    current_step: OnboardingStep
    next_step: OnboardingStep
    profile: OnboardingProfile


class OnboardingStepResponse(BaseModel):
    profile: OnboardingProfile
    next_step: OnboardingStep


class PaymentResponse(BaseModel):
    client_secret: str | None = None
    subscription_id: str
    next_step: OnboardingStep
