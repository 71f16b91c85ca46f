"""
Model cost data models.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ModelCost(BaseModel):
    """
    Cost and access rules for a single generation model.

    Costs are denominated in USD credits per generation.
    """

    model_name: str = Field(..., description="Model identifier, e.g. 'veo3-fast'")
    cost_per_generation: Decimal = Field(..., ge=0, description="Credits charged per generation")
    allowed_tiers: tuple[str, ...] = Field(
        default=("free", "light", "heavy"),
        description="Subscription tiers that may use this model",
    )
    min_level: Optional[int] = Field(
        None,
        ge=1,
        description="Level from which progression grants access, if any",
    )
    provider: Optional[str] = Field(None, description="Provider family: fal, replicate, google")
    generation_type: str = Field(default="image", description="image, video or character_variation")
    is_active: bool = Field(default=True, description="Inactive models cannot be charged")

    model_config = {"frozen": True}


class ModelCostResponse(BaseModel):
    """One entry of the public model cost listing."""

    model_name: str
    cost_per_generation: float
    allowed_tiers: list[str]
    is_active: bool


class ModelCostListResponse(BaseModel):
    """API response for GET /model-costs."""

    models: list[ModelCostResponse]
