"""
Generation provider interface.
"""

from typing import Any, Protocol, runtime_checkable

from shared.model_config import ModelConfig


@runtime_checkable
class IGenerationProvider(Protocol):
    """A provider family that can run a generation for a catalog entry."""

    name: str

    async def generate(self, config: ModelConfig, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Run one generation.

        Args:
            config: Catalog entry for the model
            payload: Provider input, passed through unchanged

        Returns:
            The provider's output as JSON

        Raises:
            ProviderError: On transport errors or non-success responses
        """
        ...
