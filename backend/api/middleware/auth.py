"""
Supabase JWT verification for the API.

Supabase signs session tokens with the project's JWT secret (HS256) for
the "authenticated" audience. Routes resolve the caller through one of
two dependencies: get_current_user when a session is mandatory, and
get_optional_user for credit checks that anonymous callers may also run.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from shared.config import get_settings
from shared.models import AuthenticatedUser
from ..models.user import TokenPayload

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"
DEFAULT_ROLE = "user"

bearer_scheme = HTTPBearer(auto_error=False)


class AuthError(HTTPException):
    """401 carrying the Bearer challenge header."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_token(token: str) -> TokenPayload:
    """
    Verify a Supabase session token and return its claims.

    Raises:
        AuthError: If no JWT secret is configured, or the token is
                   expired, badly signed or not for this audience
    """
    secret = get_settings().supabase_jwt_secret
    if not secret:
        raise AuthError("Server authentication not configured")

    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}")
    return TokenPayload(**claims)


def get_user_from_payload(payload: TokenPayload) -> AuthenticatedUser:
    return AuthenticatedUser(
        id=payload.sub,
        email=payload.email,
        email_verified=payload.email_confirmed_at is not None,
        last_sign_in=datetime.fromtimestamp(payload.iat, tz=timezone.utc),
        role=payload.role or DEFAULT_ROLE,
    )


def _authenticate(credentials: HTTPAuthorizationCredentials) -> AuthenticatedUser:
    return get_user_from_payload(decode_token(credentials.credentials))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """The verified caller; 401 without a bearer token."""
    if credentials is None:
        raise AuthError("Missing authorization header")
    return _authenticate(credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthenticatedUser]:
    """
    The verified caller, or None for an anonymous request.

    A token that is present but fails verification is still a 401, so a
    non-None result always means a verified user.
    """
    if credentials is None:
        return None
    return _authenticate(credentials)
