"""Re-export all models so Base.metadata sees them."""

from app.db.models.user_onboarding import UserOnboarding

__all__ = [
    "UserOnboarding",
]
