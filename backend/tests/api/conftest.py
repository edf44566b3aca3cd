"""API-specific test fixtures."""

import os
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.auth import ClerkUser
from app.core.config import Settings

WEBHOOK_SECRET = "whsec_test_dummy"
DEFAULT_PRICE_ID = "price_default"


@pytest.fixture
def api_user() -> ClerkUser:
    return ClerkUser(user_id="user_api_test", claims={"sub": "user_api_test", "email": "jane@x.com"})


@pytest.fixture
def api_settings() -> Settings:
    """Settings seen by the billing routes (webhook secret, default price, frontend URL)."""
    return Settings(
        debug=True,
        frontend_url="https://app.test",
        stripe_webhook_secret=WEBHOOK_SECRET,
        stripe_default_price_id=DEFAULT_PRICE_ID,
    )


@pytest.fixture
def api_client(tmp_path, api_user, api_settings, billing_fake):
    """FastAPI test client with a test database and BillingProviderFake.

    Initializes the global database via init_db inside the TestClient's
    own event loop so route handlers can use get_session_factory().
    Auth and the billing provider are replaced via dependency_overrides.
    """
    from fastapi.middleware.cors import CORSMiddleware

    from app.api.routes import api_router
    from app.api.routes.onboarding import get_billing_provider
    from app.core.auth import require_auth
    from app.db import close_db, init_db
    from app.main import register_exception_handlers

    db_url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - initialize DB in TestClient's event loop."""
        # Reset global so init_db creates a fresh engine in THIS loop
        import app.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        yield
        async with db_mod._engine.begin() as conn:
            await conn.run_sync(db_mod.Base.metadata.drop_all)
        await close_db()

    app = FastAPI(title="Travel Concierge - Test Client", version="0.1.0", lifespan=test_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers (needed for debug_id and next_step testing)
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    async def _override_auth():
        return api_user

    app.dependency_overrides[require_auth] = _override_auth
    app.dependency_overrides[get_billing_provider] = lambda: billing_fake

    with patch("app.api.routes.billing.get_settings", return_value=api_settings):
        with TestClient(app) as client:
            yield client
