"""Onboarding step enums and next-step derivation.

Pure domain logic with no external dependencies. Works on any object that
exposes the onboarding record attributes (ORM row, test double, snapshot).
"""
from enum import Enum
from typing import Any


class OnboardingStep(str, Enum):
    """Fixed four-stage onboarding flow plus the initial state."""

    NOT_STARTED = "not_started"
    BASIC_INFO = "basic_info"
    ADDITIONAL_DETAILS = "additional_details"
    PAYMENT = "payment"
    COMPLETED = "completed"


class SubscriptionStatus(str, Enum):
    """Provider subscription states mirrored locally."""

    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


def _filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def has_basic_info(record: Any) -> bool:
    """Step 1 is complete when full name, phone and company name are all set."""
    return all(_filled(getattr(record, field, None)) for field in ("full_name", "phone", "company_name"))


def has_additional_details(record: Any) -> bool:
    """Step 2 is complete when industry and role are set and goals is a non-empty list."""
    goals = getattr(record, "goals", None)
    return (
        _filled(getattr(record, "industry", None))
        and _filled(getattr(record, "role", None))
        and isinstance(goals, list)
        and len(goals) > 0
    )


def has_active_subscription(record: Any) -> bool:
    return (
        _filled(getattr(record, "subscription_id", None))
        and getattr(record, "subscription_status", None) == SubscriptionStatus.ACTIVE.value
    )


def first_failing_precondition(record: Any) -> OnboardingStep | None:
    """Return the step to redirect to for the first unmet completion precondition.

    Checked in order, first failure wins:
        1. step-1 fields present, else BASIC_INFO
        2. step-2 fields present, else ADDITIONAL_DETAILS
        3. subscription present and active, else PAYMENT

    Returns None when onboarding may be completed.
    """
    if not has_basic_info(record):
        return OnboardingStep.BASIC_INFO
    if not has_additional_details(record):
        return OnboardingStep.ADDITIONAL_DETAILS
    if not has_active_subscription(record):
        return OnboardingStep.PAYMENT
    return None


def derive_next_step(record: Any) -> OnboardingStep:
    """Derive the next step from field population, not from the stored pointer.

    A record already marked complete stays COMPLETED (cancellation later does
    not reopen onboarding). Otherwise the answer is the first failing
    completion precondition, or COMPLETED once every precondition holds.
    """
    if getattr(record, "onboarding_complete", False):
        return OnboardingStep.COMPLETED
    return first_failing_precondition(record) or OnboardingStep.COMPLETED


def stored_step(record: Any) -> OnboardingStep:
    """Coerce the persisted step marker, tolerating unknown or missing values."""
    raw = getattr(record, "current_step", None)
    try:
        return OnboardingStep(raw)
    except ValueError:
        return OnboardingStep.NOT_STARTED


_STEP_ORDER = list(OnboardingStep)


def advance_step(current: OnboardingStep, target: OnboardingStep) -> OnboardingStep:
    """Return whichever of the two steps is further along; the pointer never moves back."""
    return max(current, target, key=_STEP_ORDER.index)
