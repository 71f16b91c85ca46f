"""
Token models for authentication.

The authenticated user model lives in shared.models; this module only
describes the Supabase JWT claims it is built from.
"""

from pydantic import BaseModel
from typing import Optional


class TokenPayload(BaseModel):
    """JWT token payload structure."""
    sub: str  # User ID
    email: str
    email_confirmed_at: Optional[str] = None
    role: Optional[str] = None
    aud: str  # Audience
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp
