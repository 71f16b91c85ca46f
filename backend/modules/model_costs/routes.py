"""
Model cost API endpoints.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_model_cost_registry

from .interfaces import IModelCostRegistry
from .models import ModelCostListResponse, ModelCostResponse

router = APIRouter()


@router.get("/model-costs", response_model=ModelCostListResponse)
async def list_model_costs(
    registry: IModelCostRegistry = Depends(get_model_cost_registry),
) -> ModelCostListResponse:
    """
    Active models and their per-generation cost, cheapest first.
    """
    return ModelCostListResponse(
        models=[
            ModelCostResponse(
                model_name=m.model_name,
                cost_per_generation=float(m.cost_per_generation),
                allowed_tiers=list(m.allowed_tiers),
                is_active=m.is_active,
            )
            for m in registry.list_models()
        ]
    )
