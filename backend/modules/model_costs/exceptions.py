"""
Model cost registry exceptions.
"""

from shared.exceptions import VaryError, NotFoundError


class ModelCostError(VaryError):
    """Base exception for model cost errors."""

    pass


class ModelNotFoundError(NotFoundError):
    """
    Raised when a model is not in the registry or is inactive.

    An unknown model is never treated as free.
    """

    def __init__(self, model_name: str):
        super().__init__(
            f"Model not found or inactive: {model_name}",
            code="MODEL_NOT_FOUND",
            details={"model_name": model_name},
        )
        self.model_name = model_name
