from app.billing.provider import BillingError
from app.domain.onboarding_steps import OnboardingStep


class OnboardingError(Exception):
    """Base exception for the onboarding and billing core."""

    pass


class OnboardingRecordNotFoundError(OnboardingError):
    """Raised when no onboarding record exists for a user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No onboarding record for user '{user_id}'")


class StepSequenceError(OnboardingError):
    """Raised when a step is attempted before an earlier step is complete.

    Carries the step the client should redirect to.
    """

    def __init__(self, message: str, next_step: OnboardingStep):
        self.message = message
        self.next_step = next_step
        super().__init__(message)


class BillingAbortError(OnboardingError):
    """Raised when a critical-path billing call fails and the transition is aborted."""

    def __init__(self, error: BillingError, operation: str):
        self.error = error
        self.operation = operation
        super().__init__(f"{operation} failed: {error.message}")


class BillingCustomerMissingError(OnboardingError):
    """Raised when an operation needs a billing customer the user does not have yet."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("No billing account found for this user. Please complete payment first.")
