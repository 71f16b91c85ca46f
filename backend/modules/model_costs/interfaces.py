"""
Model cost registry interface.

The credit service and the access gate depend on IModelCostRegistry,
not on where the costs are stored.
"""

from typing import Protocol, runtime_checkable

from .models import ModelCost


@runtime_checkable
class IModelCostRegistry(Protocol):
    """Interface for model cost lookups."""

    def get_cost(self, model_name: str) -> ModelCost:
        """
        Get the cost entry for an active model.

        Args:
            model_name: Model identifier

        Returns:
            ModelCost for the model

        Raises:
            ModelNotFoundError: If the model is unknown or inactive
        """
        ...

    def list_models(self) -> list[ModelCost]:
        """
        List active models.

        Returns:
            Active models ordered by cost ascending, then by name
        """
        ...

    def refresh(self) -> None:
        """
        Reload cost data from the backing source.

        Lets operators change prices without restarting the service.
        """
        ...
