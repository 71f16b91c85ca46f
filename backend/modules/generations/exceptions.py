"""
Generation gateway exceptions.
"""

from typing import Optional

from shared.exceptions import (
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    VaryError,
)


class GenerationError(VaryError):
    """Base exception for generation errors."""

    pass


class CreditsUnavailableError(GenerationError):
    """
    Raised when a generation could not be charged.

    Covers insufficient and inactive balances; the message is the
    user-facing reason from the credit service.
    """

    status_code = 402

    def __init__(self, model_name: str, reason: str):
        super().__init__(
            reason,
            code="CREDITS_UNAVAILABLE",
            details={"model_name": model_name},
        )


class ProviderError(ExternalServiceError):
    """Raised when a generation provider call fails."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(
            f"{provider} request failed: {message}",
            service=provider,
            code="PROVIDER_ERROR",
            details={"status": status} if status else {},
        )


class ProviderNotConfiguredError(ExternalServiceError):
    def __init__(self, provider: str):
        super().__init__(
            f"Provider not configured: {provider}",
            service=provider,
            code="PROVIDER_NOT_CONFIGURED",
        )


class GenerationFailedError(ExternalServiceError):
    """Raised when the provider failed and the charge was refunded."""

    def __init__(self, generation_id: str, provider: str, reason: str):
        super().__init__(
            f"Generation failed and was refunded: {reason}",
            service=provider,
            code="GENERATION_FAILED",
            details={"generation_id": generation_id},
        )


class GenerationAlreadyExistsError(ConflictError):
    def __init__(self, generation_id: str):
        super().__init__(
            f"Generation already submitted: {generation_id}",
            code="GENERATION_EXISTS",
            details={"generation_id": generation_id},
        )


class GenerationNotOwnedError(AuthorizationError):
    def __init__(self, generation_id: str):
        super().__init__(
            "You can only cancel your own generations",
            code="GENERATION_NOT_OWNED",
            details={"generation_id": generation_id},
        )
