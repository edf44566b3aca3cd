"""User provisioning on first login.

Idempotent: creates the default NOT_STARTED onboarding record for a new Clerk
user. Concurrent first requests for the same user are resolved by the unique
clerk_user_id constraint inside OnboardingRepository.get_or_create.
"""

import structlog

from app.db.base import get_session_factory
from app.db.models.user_onboarding import UserOnboarding
from app.services.onboarding_repository import OnboardingRepository

logger = structlog.get_logger(__name__)


async def provision_user_on_first_login(
    clerk_user_id: str,
    jwt_claims: dict,
    repository: OnboardingRepository | None = None,
) -> UserOnboarding:
    """Provision the onboarding record for a user on first login.

    Args:
        clerk_user_id: Clerk user ID from JWT
        jwt_claims: JWT claims dict; email and public_metadata.admin are read
        repository: Optional repository for testing (if None, uses the global session factory)

    Returns:
        UserOnboarding instance (either newly created or existing)
    """
    if repository is None:
        repository = OnboardingRepository(get_session_factory())

    email = jwt_claims.get("email") or None
    public_metadata = jwt_claims.get("public_metadata") or {}
    is_admin = public_metadata.get("admin") is True

    record = await repository.get_or_create(clerk_user_id, email=email, is_admin=is_admin)
    logger.debug("user_provisioned", user_id=clerk_user_id, current_step=record.current_step)
    return record
