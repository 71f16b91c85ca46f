"""
Access module exceptions.

Promo code failures are ConflictError or NotFoundError subclasses so the
UI can tell "already used" apart from "does not exist".
"""

from datetime import datetime
from typing import Optional

from shared.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    VaryError,
)

from .models import RedemptionFailure


class AccessError(VaryError):
    """Base exception for access-related errors."""

    pass


class ModelAccessDeniedError(AuthorizationError):
    """Raised when a user's tier, level and unlocks do not cover a model."""

    def __init__(self, user_id: str, model_name: str):
        super().__init__(
            f"Your plan does not include {model_name}. Upgrade or level up to unlock it.",
            code="MODEL_ACCESS_DENIED",
            details={"user_id": user_id, "model_name": model_name},
        )
        self.model_name = model_name


class SecretAccessRequiredError(AuthorizationError):
    def __init__(self, user_id: str):
        super().__init__(
            "Secret level access required",
            code="SECRET_ACCESS_REQUIRED",
            details={"user_id": user_id},
        )


class AdminRequiredError(AuthorizationError):
    def __init__(self, user_id: str):
        super().__init__(
            "Admin access required",
            code="ADMIN_REQUIRED",
            details={"user_id": user_id},
        )


class PromoCodeNotFoundError(NotFoundError):
    reason = RedemptionFailure.NOT_FOUND

    def __init__(self, code: str):
        super().__init__(
            "Invalid promo code",
            code="PROMO_CODE_NOT_FOUND",
            details={"code": code},
        )


class PromoCodeInactiveError(ValidationError):
    reason = RedemptionFailure.INACTIVE

    def __init__(self, code: str):
        super().__init__(
            "This promo code is no longer active",
            code="PROMO_CODE_INACTIVE",
            details={"code": code},
        )


class PromoCodeExpiredError(ValidationError):
    reason = RedemptionFailure.EXPIRED

    def __init__(self, code: str, expires_at: Optional[datetime] = None):
        super().__init__(
            "This promo code has expired",
            code="PROMO_CODE_EXPIRED",
            details={
                "code": code,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )


class PromoCodeExhaustedError(ConflictError):
    reason = RedemptionFailure.EXHAUSTED

    def __init__(self, code: str):
        super().__init__(
            "This promo code has reached its usage limit",
            code="PROMO_CODE_EXHAUSTED",
            details={"code": code},
        )


class PromoCodeAlreadyRedeemedError(ConflictError):
    reason = RedemptionFailure.ALREADY_REDEEMED

    def __init__(self, code: str):
        super().__init__(
            "You have already redeemed this promo code",
            code="PROMO_CODE_ALREADY_REDEEMED",
            details={"code": code},
        )


class PromoCodeGenerationError(AccessError):
    """Raised when no unique promo code could be generated."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Failed to generate a unique promo code after {attempts} attempts",
            code="PROMO_CODE_GENERATION_FAILED",
            details={"attempts": attempts},
        )


REDEMPTION_ERRORS = {
    RedemptionFailure.NOT_FOUND: PromoCodeNotFoundError,
    RedemptionFailure.INACTIVE: PromoCodeInactiveError,
    RedemptionFailure.EXPIRED: PromoCodeExpiredError,
    RedemptionFailure.EXHAUSTED: PromoCodeExhaustedError,
    RedemptionFailure.ALREADY_REDEEMED: PromoCodeAlreadyRedeemedError,
}
