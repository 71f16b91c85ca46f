"""
Model cost registry module.

Maps model names to their per-generation credit cost and access rules.

Public API:
- IModelCostRegistry: Interface for cost lookups
- ModelCost: Cost and access rules for one model
- StaticModelCostRegistry: Registry over injected entries or the YAML catalog
- SupabaseModelCostRegistry: Registry over the model_costs table with a TTL cache
"""

from .interfaces import IModelCostRegistry
from .models import ModelCost, ModelCostResponse, ModelCostListResponse
from .exceptions import ModelCostError, ModelNotFoundError
from .registry import (
    StaticModelCostRegistry,
    SupabaseModelCostRegistry,
    registry_from_catalog,
)

__all__ = [
    # Interface
    "IModelCostRegistry",
    # Models
    "ModelCost",
    "ModelCostResponse",
    "ModelCostListResponse",
    # Exceptions
    "ModelCostError",
    "ModelNotFoundError",
    # Implementations
    "StaticModelCostRegistry",
    "SupabaseModelCostRegistry",
    "registry_from_catalog",
]
