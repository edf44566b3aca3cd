"""Shared test fixtures for all test groups."""

import os

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.billing.provider_fake import BillingProviderFake
from app.db.base import Base, engine_options
from app.schemas.onboarding import AdditionalDetailsInput, BasicInfoInput, PaymentInput
from app.services.billing_sync import BillingSynchronizer
from app.services.onboarding_repository import OnboardingRepository
from app.services.onboarding_service import OnboardingService

# In-memory SQLite by default; point at Postgres with TEST_DATABASE_URL
TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def engine() -> AsyncEngine:
    """Fresh schema per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, **engine_options(TEST_DB_URL))

    import app.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def repository(session_factory) -> OnboardingRepository:
    return OnboardingRepository(session_factory)


@pytest.fixture
def billing_fake() -> BillingProviderFake:
    """Fresh BillingProviderFake with happy_path scenario (default)."""
    return BillingProviderFake(scenario="happy_path")


@pytest.fixture
def synchronizer(billing_fake, repository) -> BillingSynchronizer:
    return BillingSynchronizer(billing_fake, repository)


@pytest.fixture
def onboarding_service(repository, synchronizer) -> OnboardingService:
    return OnboardingService(repository, synchronizer)


@pytest.fixture
def basic_info() -> BasicInfoInput:
    return BasicInfoInput(full_name="Jane Doe", email="jane@x.com", phone="555-0100", company_name="Acme")


@pytest.fixture
def additional_details() -> AdditionalDetailsInput:
    return AdditionalDetailsInput(
        industry="Travel",
        company_size="11-50",
        role="Founder",
        goals=["Business travel", "Event planning"],
        referral_source="Friend",
    )


@pytest.fixture
def payment() -> PaymentInput:
    return PaymentInput(price_id="price_basic")
