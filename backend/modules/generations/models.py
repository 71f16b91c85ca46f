"""
Generation gateway data models.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from modules.access.models import LevelProgress
from modules.billing.models import GenerationStatus, GenerationType
from shared.models import CamelModel


class GenerationRequest(CamelModel):
    """Request body for POST /generations."""

    model_name: str
    generation_type: GenerationType = GenerationType.IMAGE
    generation_id: Optional[str] = Field(
        None,
        description="Client idempotency key; generated when omitted",
    )
    input: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider input passed through unchanged (prompt, image_url, ...)",
    )


class GenerationResult(BaseModel):
    """A completed generation."""

    generation_id: str
    status: GenerationStatus
    output: dict[str, Any]
    credits_used: Decimal
    remaining_credits: Decimal
    progress: Optional[LevelProgress] = None


class LevelProgressResponse(CamelModel):
    leveled_up: bool
    previous_level: int
    current_level: int
    newly_unlocked_models: list[str]


class GenerationResponse(CamelModel):
    generation_id: str
    status: GenerationStatus
    output: dict[str, Any]
    credits_used: float
    remaining_credits: float
    progress: Optional[LevelProgressResponse] = None
