"""OnboardingRepository: record-level persistence for UserOnboarding.

Every mutation is a single UPDATE + commit, so a transition either lands all
of its fields or none of them. Records are never deleted.
"""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import OnboardingRecordNotFoundError
from app.db.models.user_onboarding import UserOnboarding
from app.domain.onboarding_steps import OnboardingStep

logger = structlog.get_logger(__name__)


class OnboardingRepository:
    """Async data access for onboarding records, keyed by Clerk user ID."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, user_id: str) -> UserOnboarding | None:
        async with self.session_factory() as session:
            result = await session.execute(select(UserOnboarding).where(UserOnboarding.clerk_user_id == user_id))
            return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, email: str | None = None, is_admin: bool = False) -> UserOnboarding:
        """Load the record, creating the default NOT_STARTED record on first use.

        Race-safe: a concurrent insert for the same user loses on the unique
        constraint and re-reads the winner's row.
        """
        existing = await self.get(user_id)
        if existing is not None:
            return existing

        async with self.session_factory() as session:
            record = UserOnboarding(
                clerk_user_id=user_id,
                email=email or None,
                is_admin=is_admin,
                current_step=OnboardingStep.NOT_STARTED.value,
                onboarding_complete=False,
            )
            session.add(record)
            try:
                await session.commit()
                await session.refresh(record)
                logger.info("onboarding_record_created", user_id=user_id)
                return record
            except IntegrityError:
                await session.rollback()

        record = await self.get(user_id)
        if record is None:
            raise OnboardingRecordNotFoundError(user_id)
        return record

    async def get_by_billing_customer_id(self, customer_id: str) -> UserOnboarding | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserOnboarding).where(UserOnboarding.billing_customer_id == customer_id)
            )
            return result.scalar_one_or_none()

    async def update(self, user_id: str, **fields) -> UserOnboarding:
        """Apply all fields in one transaction and return the refreshed record.

        billing_customer_id is not writable here; use claim_billing_customer_id.

        Raises:
            OnboardingRecordNotFoundError: If the user has no record
        """
        if "billing_customer_id" in fields:
            raise ValueError("billing_customer_id can only be set through claim_billing_customer_id")

        async with self.session_factory() as session:
            result = await session.execute(select(UserOnboarding).where(UserOnboarding.clerk_user_id == user_id))
            record = result.scalar_one_or_none()
            if record is None:
                raise OnboardingRecordNotFoundError(user_id)

            for name, value in fields.items():
                setattr(record, name, value)
            record.updated_at = datetime.now(UTC)

            await session.commit()
            await session.refresh(record)
            return record

    async def claim_billing_customer_id(self, user_id: str, customer_id: str) -> str:
        """Set billing_customer_id only if it is still empty (compare-and-swap).

        Returns the ID actually stored. When another request got there first,
        the stored ID wins and the caller's customer is left orphaned at the
        provider (logged for cleanup).

        Raises:
            OnboardingRecordNotFoundError: If the user has no record
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(UserOnboarding)
                .where(
                    UserOnboarding.clerk_user_id == user_id,
                    UserOnboarding.billing_customer_id.is_(None),
                )
                .values(billing_customer_id=customer_id, updated_at=datetime.now(UTC))
            )
            await session.commit()

        if result.rowcount == 1:
            return customer_id

        record = await self.get(user_id)
        if record is None:
            raise OnboardingRecordNotFoundError(user_id)

        if record.billing_customer_id != customer_id:
            logger.warning(
                "billing_customer_orphaned",
                user_id=user_id,
                kept_customer_id=record.billing_customer_id,
                orphaned_customer_id=customer_id,
            )
        return record.billing_customer_id
