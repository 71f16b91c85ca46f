"""
Generation gateway module.

Charges, runs and refunds generations against FAL, Replicate and Google.

Public API:
- GenerationGateway: Charge -> provider call -> complete or refund
- IGenerationProvider: Interface for provider families
- FalProvider / ReplicateProvider / GoogleProvider: httpx implementations
"""

from .interfaces import IGenerationProvider
from .models import GenerationRequest, GenerationResult, GenerationResponse
from .exceptions import (
    GenerationError,
    CreditsUnavailableError,
    ProviderError,
    ProviderNotConfiguredError,
    GenerationFailedError,
    GenerationAlreadyExistsError,
    GenerationNotOwnedError,
)
from .providers import FalProvider, ReplicateProvider, GoogleProvider, get_providers
from .service import GenerationGateway

__all__ = [
    # Interface
    "IGenerationProvider",
    # Models
    "GenerationRequest",
    "GenerationResult",
    "GenerationResponse",
    # Exceptions
    "GenerationError",
    "CreditsUnavailableError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "GenerationFailedError",
    "GenerationAlreadyExistsError",
    "GenerationNotOwnedError",
    # Implementations
    "FalProvider",
    "ReplicateProvider",
    "GoogleProvider",
    "get_providers",
    "GenerationGateway",
]
