"""UserOnboarding model: per-user onboarding progress and billing mirror."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, JSON, String

from app.db.base import Base
from app.domain.onboarding_steps import OnboardingStep


class UserOnboarding(Base):
    __tablename__ = "user_onboarding"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    clerk_user_id = Column(String(255), unique=True, nullable=False, index=True)

    # Step pointer (enforcement lives in the state machine, not the schema)
    current_step = Column(String(32), nullable=False, default=OnboardingStep.NOT_STARTED.value)
    onboarding_complete = Column(Boolean, nullable=False, default=False)

    # Step 1: basic info
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company_name = Column(String(255), nullable=True)

    # Step 2: additional details
    industry = Column(String(255), nullable=True)
    company_size = Column(String(50), nullable=True)
    role = Column(String(255), nullable=True)
    goals = Column(JSON, nullable=True)  # list[str]
    referral_source = Column(String(255), nullable=True)

    # Billing customer: set at most once, never cleared
    billing_customer_id = Column(String(255), unique=True, nullable=True, index=True)

    # Subscription mirror (last writer wins, guarded by subscription_event_at for webhooks)
    subscription_id = Column(String(255), nullable=True)
    subscription_status = Column(String(50), nullable=True)
    subscription_period_start = Column(DateTime(timezone=True), nullable=True)
    subscription_period_end = Column(DateTime(timezone=True), nullable=True)
    subscription_cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    subscription_event_at = Column(DateTime(timezone=True), nullable=True)
    last_payment_at = Column(DateTime(timezone=True), nullable=True)

    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
