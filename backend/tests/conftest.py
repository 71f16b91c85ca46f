"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from jose import jwt

from api.dependencies import reset_container
from modules.access import AccessService, InMemoryAccessStore, LevelPolicy
from modules.billing import CreditService, InMemoryCreditLedger
from modules.model_costs import ModelCost, StaticModelCostRegistry


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"

# Prices used throughout the tests. 0.0398 is one standard image.
IMAGE_COST = Decimal("0.0398")
PREMIUM_VIDEO_COST = Decimal("0.15")
SEEDANCE_COST = Decimal("2.52")


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expired: bool = False,
    email_verified: bool = True,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: User ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_confirmed_at": now.isoformat() if email_verified else None,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def make_cost_entries() -> list[ModelCost]:
    """A small catalog with exact prices."""
    return [
        ModelCost(
            model_name="nano-banana",
            cost_per_generation=IMAGE_COST,
            allowed_tiers=("free", "light", "heavy"),
            provider="google",
        ),
        ModelCost(
            model_name="seedream-4",
            cost_per_generation=IMAGE_COST,
            allowed_tiers=("free", "light", "heavy"),
            provider="fal",
        ),
        ModelCost(
            model_name="seedream-4-edit",
            cost_per_generation=IMAGE_COST,
            allowed_tiers=("light", "heavy"),
            min_level=2,
            provider="fal",
        ),
        ModelCost(
            model_name="veo3-fast",
            cost_per_generation=PREMIUM_VIDEO_COST,
            allowed_tiers=("light", "heavy"),
            min_level=3,
            provider="fal",
            generation_type="video",
        ),
        ModelCost(
            model_name="seedance-pro",
            cost_per_generation=SEEDANCE_COST,
            allowed_tiers=("heavy",),
            min_level=5,
            provider="replicate",
            generation_type="video",
        ),
        ModelCost(
            model_name="retired-model",
            cost_per_generation=IMAGE_COST,
            is_active=False,
        ),
    ]


@pytest.fixture(autouse=True)
def reset_services():
    """Reset the service container before and after each test."""
    reset_container()
    yield
    reset_container()


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def test_user_email() -> str:
    """Provide a consistent test user email."""
    return "test@example.com"


@pytest.fixture
def auth_token(test_user_id: str, test_user_email: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id, email=test_user_email)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def mock_auth_settings():
    """Make the auth middleware verify tokens with TEST_JWT_SECRET."""
    with patch("api.middleware.auth.get_settings") as mock_settings:
        mock_settings.return_value.supabase_jwt_secret = TEST_JWT_SECRET
        yield mock_settings


@pytest.fixture
def registry() -> StaticModelCostRegistry:
    return StaticModelCostRegistry(entries=make_cost_entries())


@pytest.fixture
def ledger() -> InMemoryCreditLedger:
    return InMemoryCreditLedger()


@pytest.fixture
def access_store() -> InMemoryAccessStore:
    return InMemoryAccessStore()


@pytest.fixture
def access(access_store, registry) -> AccessService:
    return AccessService(
        store=access_store,
        registry=registry,
        policy=LevelPolicy(unique_model_step=5, generation_step=5, max_level=10),
        admin_emails=["boss@vary.ai"],
    )


@pytest.fixture
def credits(ledger, registry, access) -> CreditService:
    return CreditService(ledger=ledger, registry=registry, access=access)
