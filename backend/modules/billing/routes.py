"""
Credit and Stripe webhook API endpoints.

check and use accept anonymous callers (server-to-server use from the
generation workers); when a token is present the caller must be the
target user or an admin.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.dependencies import (
    get_access_service,
    get_credit_service,
    get_registered_user,
    get_stripe_bridge,
)
from api.middleware.auth import get_optional_user
from modules.access import AccessService, ModelAccessDeniedError
from shared.models import AuthenticatedUser

from .exceptions import (
    ChargeNotFoundError,
    DuplicateTransactionError,
    GenerationIdConflictError,
    InvalidAmountError,
    WebhookVerificationError,
)
from .models import (
    AddCreditsRequest,
    AddCreditsResponse,
    BalanceResponse,
    CheckCreditsRequest,
    CheckCreditsResponse,
    RefundRequest,
    RefundResponse,
    TransactionListResponse,
    TransactionResponse,
    UseCreditsRequest,
    UseCreditsResponse,
)
from .service import CreditService
from .stripe_bridge import StripeBillingBridge

logger = logging.getLogger(__name__)

router = APIRouter()
stripe_router = APIRouter()


async def _require_self_or_admin(
    user: AuthenticatedUser,
    target_user_id: str,
    access: AccessService,
) -> None:
    if user.id != target_user_id and not await access.is_admin(user.id):
        raise HTTPException(status_code=403, detail="You can only act on your own credits")


@router.post("/check", response_model=CheckCreditsResponse)
async def check_credits(
    request: CheckCreditsRequest,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    credits: CreditService = Depends(get_credit_service),
    access: AccessService = Depends(get_access_service),
) -> CheckCreditsResponse:
    """
    Check whether a user can afford one generation of a model.
    """
    if user is not None:
        await _require_self_or_admin(user, request.user_id, access)

    result = await credits.check_credits(request.user_id, request.model_name)
    return CheckCreditsResponse(
        has_credits=result.has_credits,
        available_credits=float(result.available_credits),
        model_cost=float(result.model_cost),
        error=result.error,
    )


@router.post("/use", response_model=UseCreditsResponse)
async def use_credits(
    request: UseCreditsRequest,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    credits: CreditService = Depends(get_credit_service),
    access: AccessService = Depends(get_access_service),
) -> UseCreditsResponse:
    """
    Charge one generation.

    Retrying with the same generationId returns the original charge.
    Insufficient credits is a 200 with success=false.
    """
    if user is not None:
        await _require_self_or_admin(user, request.user_id, access)

    try:
        result = await credits.use_credits(
            request.user_id,
            request.model_name,
            request.generation_type,
            generation_id=request.generation_id,
        )
    except ModelAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except GenerationIdConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return UseCreditsResponse(
        success=result.success,
        credits_used=float(result.credits_used),
        remaining_credits=float(result.remaining_credits),
        generation_id=result.generation_id,
        error=result.error,
    )


@router.post("/add", response_model=AddCreditsResponse)
async def add_credits(
    request: AddCreditsRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    credits: CreditService = Depends(get_credit_service),
    access: AccessService = Depends(get_access_service),
) -> AddCreditsResponse:
    """
    Grant credits to a user. Callers may top up themselves; admins may
    top up anyone.
    """
    await _require_self_or_admin(user, request.user_id, access)

    try:
        transaction = await credits.add_credits(request.user_id, request.amount, request.source)
    except InvalidAmountError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except DuplicateTransactionError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return AddCreditsResponse(
        success=True,
        message=f"Added {request.amount} credits",
        new_balance=float(transaction.balance_after),
    )


@router.post("/refund", response_model=RefundResponse)
async def refund_generation(
    request: RefundRequest,
    user: AuthenticatedUser = Depends(get_registered_user),
    credits: CreditService = Depends(get_credit_service),
    access: AccessService = Depends(get_access_service),
) -> RefundResponse:
    """
    Refund a charged generation. Owner or admin only.
    """
    charge = await credits.get_charge(request.generation_id)
    if charge is None:
        raise HTTPException(status_code=404, detail="Generation not found")
    await _require_self_or_admin(user, charge.user_id, access)

    try:
        result = await credits.refund(request.generation_id, reason="Refund requested")
    except ChargeNotFoundError:
        raise HTTPException(status_code=404, detail="Generation not found")

    return RefundResponse(
        success=result.success,
        status=result.status,
        refunded_amount=float(result.refunded_amount) if result.success else None,
        error=result.error,
    )


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: AuthenticatedUser = Depends(get_registered_user),
    credits: CreditService = Depends(get_credit_service),
) -> BalanceResponse:
    balance = await credits.get_balance(user.id)
    return BalanceResponse(
        balance=float(balance.current_balance),
        is_active=balance.is_active,
    )


@router.get("/history", response_model=TransactionListResponse)
async def get_history(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: AuthenticatedUser = Depends(get_registered_user),
    credits: CreditService = Depends(get_credit_service),
) -> TransactionListResponse:
    """
    The caller's credit history, most recent first.
    """
    transactions = await credits.get_history(user.id, limit=limit, offset=offset)
    return TransactionListResponse(
        transactions=[
            TransactionResponse(
                id=t.id,
                amount=float(t.amount),
                transaction_type=t.transaction_type,
                description=t.description,
                model_name=t.model_name,
                generation_id=t.generation_id,
                balance_after=float(t.balance_after),
                created_at=t.created_at,
            )
            for t in transactions
        ]
    )


@stripe_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    bridge: StripeBillingBridge = Depends(get_stripe_bridge),
) -> dict:
    """
    Stripe webhook receiver.

    The raw body is needed for signature verification.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")

    try:
        result = await bridge.handle_webhook(payload, signature)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected Stripe webhook: {e.details.get('reason', e.message)}")
        raise HTTPException(status_code=400, detail=e.message)

    return {"received": True, "handled": result.handled}
