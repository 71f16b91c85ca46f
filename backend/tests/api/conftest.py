"""
Fixtures for API tests.

Routes resolve services through FastAPI dependencies; these fixtures
override them with in-memory services so each test gets a clean store.
"""

import hashlib
import hmac
import time
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from api import app
from api.dependencies import (
    get_access_service,
    get_credit_service,
    get_model_cost_registry,
    get_stripe_bridge,
)
from modules.access import UserProfile
from modules.billing import StripeBillingBridge, SubscriptionTier
from tests.conftest import create_test_token


WEBHOOK_SECRET = "whsec_api_test"
ADMIN_ID = "admin-user-1"


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a payload."""
    timestamp = timestamp or int(time.time())
    digest = hmac.new(
        secret.encode(),
        f"{timestamp}.{payload.decode()}".encode(),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def stripe_bridge(ledger, access) -> StripeBillingBridge:
    return StripeBillingBridge(
        ledger=ledger,
        access=access,
        webhook_secret=WEBHOOK_SECRET,
        monthly_allowances={
            SubscriptionTier.LIGHT: Decimal("14.99"),
            SubscriptionTier.HEAVY: Decimal("19.99"),
        },
        subscription_metadata_lookup=lambda subscription_id: {},
    )


@pytest.fixture
def client(credits, access, registry, stripe_bridge, mock_auth_settings):
    """TestClient with in-memory services and test JWT verification."""
    app.dependency_overrides[get_credit_service] = lambda: credits
    app.dependency_overrides[get_access_service] = lambda: access
    app.dependency_overrides[get_model_cost_registry] = lambda: registry
    app.dependency_overrides[get_stripe_bridge] = lambda: stripe_bridge
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(access_store) -> dict[str, str]:
    access_store.add_user(UserProfile(id=ADMIN_ID, email="admin@example.com", is_admin=True))
    token = create_test_token(user_id=ADMIN_ID, email="admin@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers() -> dict[str, str]:
    token = create_test_token(user_id="other-user-456", email="other@example.com")
    return {"Authorization": f"Bearer {token}"}
