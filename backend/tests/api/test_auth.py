"""
Tests for JWT authentication middleware.
"""

import os
from datetime import datetime, timezone, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from api import app
from api.middleware.auth import decode_token, get_user_from_payload
from api.models.user import TokenPayload
from tests.conftest import TEST_JWT_SECRET, create_test_token


class TestDecodeToken:

    @patch("api.middleware.auth.get_settings")
    def test_valid_token(self, mock_settings):
        """Valid token should decode successfully."""
        mock_settings.return_value.supabase_jwt_secret = TEST_JWT_SECRET
        payload = decode_token(create_test_token())
        assert payload.sub == "test-user-123"
        assert payload.email == "test@example.com"

    @patch("api.middleware.auth.get_settings")
    def test_expired_token(self, mock_settings):
        """Expired token should raise AuthError."""
        mock_settings.return_value.supabase_jwt_secret = TEST_JWT_SECRET
        with pytest.raises(Exception) as exc_info:
            decode_token(create_test_token(expired=True))
        assert "expired" in str(exc_info.value.detail).lower()

    @patch("api.middleware.auth.get_settings")
    def test_invalid_token(self, mock_settings):
        """Invalid token should raise AuthError."""
        mock_settings.return_value.supabase_jwt_secret = TEST_JWT_SECRET
        with pytest.raises(Exception) as exc_info:
            decode_token("invalid-token")
        assert "Invalid token" in str(exc_info.value.detail)

    @patch("api.middleware.auth.get_settings")
    def test_wrong_secret(self, mock_settings):
        mock_settings.return_value.supabase_jwt_secret = "another-secret"
        with pytest.raises(Exception) as exc_info:
            decode_token(create_test_token())
        assert exc_info.value.status_code == 401

    @patch("api.middleware.auth.get_settings")
    def test_wrong_audience(self, mock_settings):
        mock_settings.return_value.supabase_jwt_secret = TEST_JWT_SECRET
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "test-user-123",
                "email": "test@example.com",
                "aud": "anon",
                "exp": int((now + timedelta(hours=1)).timestamp()),
                "iat": int(now.timestamp()),
            },
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(Exception) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


class TestProtectedRoutes:
    """Auth behaviour through a route that requires a user."""

    def test_missing_auth_header(self, client):
        response = client.get("/api/credits/balance")
        assert response.status_code == 401

    def test_valid_token(self, client, auth_headers):
        response = client.get("/api/credits/balance", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"balance": 0.0, "isActive": True}

    def test_expired_token(self, client):
        token = create_test_token(expired=True)
        response = client.get(
            "/api/credits/balance",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
        assert "expired" in response.json()["detail"].lower()

    @patch("api.middleware.auth.get_settings")
    def test_missing_jwt_secret(self, mock_settings, client, auth_headers):
        """Missing JWT secret should return 401."""
        mock_settings.return_value.supabase_jwt_secret = ""
        response = client.get("/api/credits/balance", headers=auth_headers)
        assert response.status_code == 401
        assert "not configured" in response.json()["detail"].lower()

    def test_registered_user_row_created(self, client, auth_headers, access_store):
        client.get("/api/credits/balance", headers=auth_headers)
        profile = access_store.get_user("test-user-123")
        assert profile is not None
        assert profile.email == "test@example.com"


class TestOptionalAuth:
    """check and use accept anonymous callers but reject bad tokens."""

    def test_anonymous_allowed(self, client):
        response = client.post(
            "/api/credits/check",
            json={"userId": "test-user-123", "modelName": "nano-banana"},
        )
        assert response.status_code == 200

    def test_invalid_token_rejected(self, client):
        response = client.post(
            "/api/credits/check",
            json={"userId": "test-user-123", "modelName": "nano-banana"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401


class TestTokenPayloadConversion:

    def test_get_user_from_payload(self):
        """Should convert payload to AuthenticatedUser."""
        payload = TokenPayload(
            sub="user-123",
            email="test@example.com",
            email_confirmed_at="2024-01-01T00:00:00Z",
            aud="authenticated",
            exp=9999999999,
            iat=1704067200,
        )
        user = get_user_from_payload(payload)
        assert user.id == "user-123"
        assert user.email == "test@example.com"
        assert user.email_verified is True
        assert user.role == "user"

    def test_get_user_from_payload_unverified_email(self):
        """Should handle unverified email correctly."""
        payload = TokenPayload(
            sub="user-456",
            email="unverified@example.com",
            email_confirmed_at=None,
            aud="authenticated",
            role="authenticated",
            exp=9999999999,
            iat=1704067200,
        )
        user = get_user_from_payload(payload)
        assert user.email_verified is False
        assert user.role == "authenticated"


# Integration test that uses real JWT secret from environment
@pytest.mark.skipif(
    not os.environ.get("SUPABASE_JWT_SECRET"),
    reason="SUPABASE_JWT_SECRET not set"
)
class TestAuthIntegration:
    """Integration tests using real Supabase JWT secret from environment."""

    def test_real_jwt_secret_rejects_wrong_secret(self):
        """Token signed with wrong secret should be rejected."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": "hacker",
            "email": "hacker@evil.com",
            "aud": "authenticated",
            "exp": int((now + timedelta(hours=1)).timestamp()),
            "iat": int(now.timestamp()),
        }
        token = jwt.encode(payload, "this-is-not-the-real-secret", algorithm="HS256")

        response = TestClient(app).get(
            "/api/credits/balance",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
        assert "Invalid token" in response.json()["detail"]
