"""
Error response models.

Standardized error responses for the API.
"""

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned for VaryError subclasses that reach the app."""

    error: str
    message: str
    details: dict[str, Any] = {}
