"""
Generation gateway.

Charges a generation, calls the provider, then completes the charge and
records progression on success or refunds it on failure.
"""

import logging
import uuid
from typing import TYPE_CHECKING

from modules.billing import ChargeNotFoundError, CreditService, RefundResult
from modules.model_costs import ModelNotFoundError
from shared.exceptions import ExternalServiceError
from shared.model_config import ModelConfig

from .exceptions import (
    CreditsUnavailableError,
    GenerationAlreadyExistsError,
    GenerationFailedError,
    GenerationNotOwnedError,
    ProviderNotConfiguredError,
)
from .interfaces import IGenerationProvider
from .models import GenerationRequest, GenerationResult

if TYPE_CHECKING:
    from modules.access import AccessService

logger = logging.getLogger(__name__)


class GenerationGateway:
    """Runs charged generations against the configured providers."""

    def __init__(
        self,
        credits: CreditService,
        access: "AccessService",
        catalog: dict[str, ModelConfig],
        providers: dict[str, IGenerationProvider],
    ):
        self._credits = credits
        self._access = access
        self._catalog = catalog
        self._providers = providers

    async def generate(self, user_id: str, request: GenerationRequest) -> GenerationResult:
        """
        Charge and run one generation.

        Raises:
            ModelNotFoundError: If the model is not in the catalog (404)
            ProviderNotConfiguredError: If the provider has no credentials (502)
            GenerationAlreadyExistsError: If the generation id was used (409)
            ModelAccessDeniedError: If the user may not use the model (403)
            CreditsUnavailableError: If the charge was refused (402)
            GenerationFailedError: If the provider failed; the charge is refunded (502)
        """
        config = self._catalog.get(request.model_name)
        if config is None or not config.is_active:
            raise ModelNotFoundError(request.model_name)

        provider = self._providers.get(config.provider)
        if provider is None:
            raise ProviderNotConfiguredError(config.provider)

        generation_id = request.generation_id or str(uuid.uuid4())
        if await self._credits.get_charge(generation_id) is not None:
            raise GenerationAlreadyExistsError(generation_id)

        usage = await self._credits.use_credits(
            user_id,
            request.model_name,
            request.generation_type,
            generation_id=generation_id,
        )
        if not usage.success:
            raise CreditsUnavailableError(request.model_name, usage.error or "Credits unavailable")

        try:
            output = await provider.generate(config, request.input)
        except ExternalServiceError as e:
            logger.warning(f"Generation {generation_id} failed on {config.provider}: {e.message}")
            await self._credits.refund(generation_id, reason=f"Provider failure: {config.provider}")
            raise GenerationFailedError(generation_id, config.provider, e.message)

        charge = await self._credits.complete(generation_id)
        progress = await self._access.record_usage(
            user_id,
            request.model_name,
            request.generation_type,
            cost_credits=usage.credits_used,
        )
        logger.info(f"Generation {generation_id} completed with {request.model_name}")

        return GenerationResult(
            generation_id=generation_id,
            status=charge.status,
            output=output,
            credits_used=usage.credits_used,
            remaining_credits=usage.remaining_credits,
            progress=progress,
        )

    async def cancel(self, user_id: str, generation_id: str) -> RefundResult:
        """
        Cancel a generation and refund its charge.

        Raises:
            ChargeNotFoundError: If the generation was never charged
            GenerationNotOwnedError: If the caller is neither owner nor admin
        """
        charge = await self._credits.get_charge(generation_id)
        if charge is None:
            raise ChargeNotFoundError(generation_id)
        if charge.user_id != user_id and not await self._access.is_admin(user_id):
            raise GenerationNotOwnedError(generation_id)

        return await self._credits.refund(generation_id, reason="Cancelled by user")
