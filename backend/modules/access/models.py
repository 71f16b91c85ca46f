"""
Access module data models.

Users, promo codes, progression state and the request/response bodies
of the promo, progression and unlock endpoints.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from modules.billing.models import GenerationType, SubscriptionTier
from shared.models import CamelModel


class AccessType(str, Enum):
    """What redeeming a promo code grants."""

    SECRET_LEVEL = "secret_level"  # Manual model unlocks
    PREMIUM = "premium"            # Paid-tier model access


class RedemptionFailure(str, Enum):
    """Why a promo code could not be redeemed."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    ALREADY_REDEEMED = "already_redeemed"


class UserProfile(BaseModel):
    """The parts of a users row the access gate reads and writes."""

    id: str = Field(..., description="User ID (UUID from Supabase)")
    email: Optional[str] = Field(None, description="User's email address")
    is_admin: bool = Field(default=False, description="Admin flag from the users table")
    secret_level: int = Field(default=1, ge=1, description="Highest level reached")
    total_generations: int = Field(default=0, ge=0)
    unique_models_used: int = Field(default=0, ge=0)
    tier: SubscriptionTier = Field(default=SubscriptionTier.FREE)
    subscription_status: Optional[str] = None
    last_level_up: Optional[datetime] = None


class PromoCode(BaseModel):
    """A redeemable promo code."""

    id: str
    code: str = Field(..., description="Unique, uppercase code text")
    description: Optional[str] = None
    access_type: AccessType = AccessType.SECRET_LEVEL
    max_uses: Optional[int] = Field(default=1, ge=1, description="None means unlimited")
    used_count: int = Field(default=0, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: datetime


class PromoRedemptionResult(BaseModel):
    """Outcome of redeeming a promo code."""

    success: bool
    access_type: Optional[AccessType] = None
    error: Optional[str] = None
    reason: Optional[RedemptionFailure] = None


class PromoRedemption(BaseModel):
    """A promo code redemption joined with the redeeming user."""

    promo: PromoCode
    user: UserProfile
    redeemed_at: datetime


class UsageRecordOutcome(BaseModel):
    """Counters after a usage record, as returned by the store."""

    profile: UserProfile
    is_new_model: bool


class ModelUsage(BaseModel):
    """Per-model usage for one user."""

    model_name: str
    generation_type: GenerationType
    uses: int = 0
    cost_credits: Decimal = Decimal("0")
    first_used_at: datetime
    last_used_at: datetime


class LevelProgress(BaseModel):
    """Level change caused by recording a generation."""

    leveled_up: bool
    previous_level: int
    current_level: int
    newly_unlocked_models: list[str] = Field(default_factory=list)


class UnlockResult(BaseModel):
    success: bool
    message: str
    already_unlocked: bool = False


class Progression(BaseModel):
    """A user's full progression state."""

    level: int
    level_title: str
    total_generations: int
    unique_models_used: int
    last_level_up: Optional[datetime] = None
    unlocked_models: list[str] = Field(default_factory=list)
    model_usage: list[ModelUsage] = Field(default_factory=list)
    next_level_unique_models: Optional[int] = None
    next_level_generations: Optional[int] = None


# ---------------------------------------------------------------------------
# API request/response bodies
# ---------------------------------------------------------------------------


class RedeemPromoRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)


class RedeemPromoResponse(CamelModel):
    success: bool
    access_type: Optional[AccessType] = None
    error: Optional[str] = None
    reason: Optional[RedemptionFailure] = None


class PromoAccessResponse(CamelModel):
    has_access: bool
    is_admin: bool


class CreatePromoRequest(CamelModel):
    """Request body for POST /admin/promo."""

    description: Optional[str] = None
    max_uses: Optional[int] = Field(default=1, ge=1)
    expires_at: Optional[datetime] = None
    access_type: AccessType = AccessType.SECRET_LEVEL


class PromoCodeResponse(CamelModel):
    id: str
    code: str
    description: Optional[str] = None
    access_type: AccessType
    max_uses: Optional[int] = None
    used_count: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class CreatePromoResponse(CamelModel):
    success: bool
    promo_code: PromoCodeResponse


class PromoUserResponse(CamelModel):
    user_id: str
    email: Optional[str] = None
    level: int
    total_generations: int
    unique_models_used: int
    redeemed_at: datetime
    promo_code: PromoCodeResponse


class PromoUsersResponse(CamelModel):
    """Response body for GET /admin/promo/users."""

    success: bool
    promo_users: list[PromoUserResponse]


class TrackUsageRequest(CamelModel):
    """Request body for POST /progression/track."""

    model_name: str
    generation_type: GenerationType
    cost_credits: Decimal = Field(default=Decimal("0"), ge=0)


class TrackUsageResponse(CamelModel):
    leveled_up: bool
    current_level: int
    previous_level: int
    unlocked_models: list[str]


class ModelUsageResponse(CamelModel):
    model_name: str
    generation_type: GenerationType
    uses: int
    cost_credits: float
    first_used_at: datetime
    last_used_at: datetime


class ProgressionResponse(CamelModel):
    level: int
    level_title: str
    total_generations: int
    unique_models_used: int
    last_level_up: Optional[datetime] = None
    unlocked_models: list[str]
    model_usage: list[ModelUsageResponse]
    next_level_unique_models: Optional[int] = None
    next_level_generations: Optional[int] = None


class UnlockModelRequest(CamelModel):
    model_name: str


class UnlockModelResponse(CamelModel):
    success: bool
    message: str
    already_unlocked: bool = False


class UnlockedModelsResponse(CamelModel):
    unlocked_models: list[str]
