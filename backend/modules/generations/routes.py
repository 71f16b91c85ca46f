"""
Generation API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_generation_gateway, get_registered_user
from modules.access import ModelAccessDeniedError
from modules.billing import ChargeNotFoundError
from modules.billing.models import RefundResponse
from modules.model_costs import ModelNotFoundError
from shared.models import AuthenticatedUser

from .exceptions import (
    CreditsUnavailableError,
    GenerationAlreadyExistsError,
    GenerationFailedError,
    GenerationNotOwnedError,
    ProviderNotConfiguredError,
)
from .models import GenerationRequest, GenerationResponse, LevelProgressResponse
from .service import GenerationGateway

router = APIRouter()


@router.post("", response_model=GenerationResponse)
async def create_generation(
    request: GenerationRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    gateway: GenerationGateway = Depends(get_generation_gateway),
) -> GenerationResponse:
    """
    Charge and run a generation.

    The charge is refunded automatically when the provider fails.
    """
    try:
        result = await gateway.generate(user.id, request)
    except ModelNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ModelAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except CreditsUnavailableError as e:
        raise HTTPException(status_code=402, detail=e.message)
    except GenerationAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except (ProviderNotConfiguredError, GenerationFailedError) as e:
        raise HTTPException(status_code=502, detail=e.message)

    progress = None
    if result.progress is not None:
        progress = LevelProgressResponse(
            leveled_up=result.progress.leveled_up,
            previous_level=result.progress.previous_level,
            current_level=result.progress.current_level,
            newly_unlocked_models=result.progress.newly_unlocked_models,
        )
    return GenerationResponse(
        generation_id=result.generation_id,
        status=result.status,
        output=result.output,
        credits_used=float(result.credits_used),
        remaining_credits=float(result.remaining_credits),
        progress=progress,
    )


@router.post("/{generation_id}/cancel", response_model=RefundResponse)
async def cancel_generation(
    generation_id: str,
    user: AuthenticatedUser = Depends(get_registered_user),
    gateway: GenerationGateway = Depends(get_generation_gateway),
) -> RefundResponse:
    """
    Cancel a generation and refund its charge.
    """
    try:
        result = await gateway.cancel(user.id, generation_id)
    except ChargeNotFoundError:
        raise HTTPException(status_code=404, detail="Generation not found")
    except GenerationNotOwnedError:
        raise HTTPException(status_code=404, detail="Generation not found")

    return RefundResponse(
        success=result.success,
        status=result.status,
        refunded_amount=float(result.refunded_amount) if result.success else None,
        error=result.error,
    )
