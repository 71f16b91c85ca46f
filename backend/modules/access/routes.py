"""
Promo code, progression and model unlock API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from api.dependencies import get_access_service, get_registered_user
from modules.model_costs import ModelNotFoundError
from shared.models import AuthenticatedUser

from .exceptions import (
    AdminRequiredError,
    ModelAccessDeniedError,
    PromoCodeGenerationError,
    REDEMPTION_ERRORS,
    SecretAccessRequiredError,
)
from .models import (
    CreatePromoRequest,
    CreatePromoResponse,
    ModelUsageResponse,
    PromoAccessResponse,
    PromoCode,
    PromoCodeResponse,
    PromoUserResponse,
    PromoUsersResponse,
    ProgressionResponse,
    RedeemPromoRequest,
    RedeemPromoResponse,
    TrackUsageRequest,
    TrackUsageResponse,
    UnlockedModelsResponse,
    UnlockModelRequest,
    UnlockModelResponse,
)
from .service import AccessService

promo_router = APIRouter()
admin_router = APIRouter()
progression_router = APIRouter()
models_router = APIRouter()


def _promo_response(promo: PromoCode) -> PromoCodeResponse:
    return PromoCodeResponse(
        id=promo.id,
        code=promo.code,
        description=promo.description,
        access_type=promo.access_type,
        max_uses=promo.max_uses,
        used_count=promo.used_count,
        expires_at=promo.expires_at,
        is_active=promo.is_active,
        created_at=promo.created_at,
    )


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------


@promo_router.post("/redeem", response_model=RedeemPromoResponse)
async def redeem_promo_code(
    request: RedeemPromoRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
):
    """
    Redeem a promo code.

    Failures return the reason with a matching status: 404 not_found,
    400 inactive/expired, 409 exhausted/already_redeemed.
    """
    result = await access.redeem_promo_code(user.id, request.code)
    body = RedeemPromoResponse(
        success=result.success,
        access_type=result.access_type,
        error=result.error,
        reason=result.reason,
    )
    if result.success:
        return body

    status_code = REDEMPTION_ERRORS[result.reason].status_code
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


@promo_router.get("/access", response_model=PromoAccessResponse)
async def get_promo_access(
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> PromoAccessResponse:
    return PromoAccessResponse(
        has_access=await access.has_secret_access(user.id),
        is_admin=await access.is_admin(user.id),
    )


@admin_router.post("/promo", response_model=CreatePromoResponse, status_code=201)
async def create_promo_code(
    request: CreatePromoRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> CreatePromoResponse:
    """
    Generate a new promo code. Admin only.
    """
    try:
        promo = await access.create_promo_code(
            created_by=user.id,
            description=request.description,
            max_uses=request.max_uses,
            expires_at=request.expires_at,
            access_type=request.access_type,
        )
    except AdminRequiredError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except PromoCodeGenerationError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return CreatePromoResponse(success=True, promo_code=_promo_response(promo))


@admin_router.get("/promo/users", response_model=PromoUsersResponse)
async def list_promo_users(
    limit: int = Query(100, ge=1, le=500),
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> PromoUsersResponse:
    """
    List promo code redemptions with each user's level and usage. Admin only.
    """
    try:
        redemptions = await access.list_promo_redemptions(user.id, limit=limit)
    except AdminRequiredError as e:
        raise HTTPException(status_code=403, detail=e.message)

    return PromoUsersResponse(
        success=True,
        promo_users=[
            PromoUserResponse(
                user_id=r.user.id,
                email=r.user.email,
                level=access.compute_level(r.user),
                total_generations=r.user.total_generations,
                unique_models_used=r.user.unique_models_used,
                redeemed_at=r.redeemed_at,
                promo_code=_promo_response(r.promo),
            )
            for r in redemptions
        ],
    )


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


@progression_router.post("/track", response_model=TrackUsageResponse)
async def track_usage(
    request: TrackUsageRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> TrackUsageResponse:
    """
    Record a completed generation for level progression.
    """
    try:
        progress = await access.record_usage(
            user.id,
            request.model_name,
            request.generation_type,
            cost_credits=request.cost_credits,
        )
    except ModelNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ModelAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    return TrackUsageResponse(
        leveled_up=progress.leveled_up,
        current_level=progress.current_level,
        previous_level=progress.previous_level,
        unlocked_models=progress.newly_unlocked_models,
    )


@progression_router.get("", response_model=ProgressionResponse)
async def get_progression(
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> ProgressionResponse:
    progression = await access.get_progression(user.id)
    return ProgressionResponse(
        level=progression.level,
        level_title=progression.level_title,
        total_generations=progression.total_generations,
        unique_models_used=progression.unique_models_used,
        last_level_up=progression.last_level_up,
        unlocked_models=progression.unlocked_models,
        model_usage=[
            ModelUsageResponse(
                model_name=u.model_name,
                generation_type=u.generation_type,
                uses=u.uses,
                cost_credits=float(u.cost_credits),
                first_used_at=u.first_used_at,
                last_used_at=u.last_used_at,
            )
            for u in progression.model_usage
        ],
        next_level_unique_models=progression.next_level_unique_models,
        next_level_generations=progression.next_level_generations,
    )


# ---------------------------------------------------------------------------
# Model unlocks
# ---------------------------------------------------------------------------


@models_router.post("/unlock", response_model=UnlockModelResponse)
async def unlock_model(
    request: UnlockModelRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> UnlockModelResponse:
    """
    Unlock a model. Requires secret level access.
    """
    try:
        result = await access.unlock_model(user.id, request.model_name)
    except SecretAccessRequiredError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except ModelNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return UnlockModelResponse(
        success=result.success,
        message=result.message,
        already_unlocked=result.already_unlocked,
    )


@models_router.get("/unlocked", response_model=UnlockedModelsResponse)
async def list_unlocked_models(
    user: AuthenticatedUser = Depends(get_registered_user),
    access: AccessService = Depends(get_access_service),
) -> UnlockedModelsResponse:
    return UnlockedModelsResponse(unlocked_models=await access.list_unlocked_models(user.id))
