"""
Access module interfaces.

IAccessStore is the transactional store behind the gate. IAccessGate is
what the credit service, the Stripe bridge and the generation gateway
depend on.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from modules.billing.models import GenerationType, SubscriptionTier

from .models import (
    AccessType,
    LevelProgress,
    ModelUsage,
    PromoCode,
    PromoRedemption,
    PromoRedemptionResult,
    UsageRecordOutcome,
    UserProfile,
)


@runtime_checkable
class IAccessStore(Protocol):
    """
    Interface for access and progression state.

    redeem_promo_code, record_model_usage, raise_level and unlock_model
    are each a single atomic unit in the store.
    """

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Get a user's profile, or None if the user has no row."""
        ...

    def ensure_user(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        """Create the user's row if missing and return the profile."""
        ...

    def redeem_promo_code(self, user_id: str, code: str, now: datetime) -> PromoRedemptionResult:
        """
        Redeem a promo code for a user.

        Validates active, expiry and remaining uses, rejects a repeat
        redemption by the same user, increments used_count and records
        the redemption, all in one atomic unit.

        Returns:
            PromoRedemptionResult whose reason is set on failure
        """
        ...

    def has_promo_access(self, user_id: str, access_type: AccessType) -> bool:
        """Whether the user has redeemed a code of the given type."""
        ...

    def record_model_usage(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        cost_credits: Decimal,
    ) -> UsageRecordOutcome:
        """
        Record one generation.

        Adds model_name to the user's model set (counting it in
        unique_models_used only the first time) and increments
        total_generations.
        """
        ...

    def raise_level(self, user_id: str, level: int, now: datetime) -> tuple[int, int]:
        """
        Raise the stored level to at least level; never lowers it.

        Returns:
            (previous_level, current_level)
        """
        ...

    def unlock_model(self, user_id: str, model_name: str) -> bool:
        """
        Record an explicit unlock.

        Returns:
            True if inserted, False if the model was already unlocked
        """
        ...

    def list_unlocked_models(self, user_id: str) -> list[str]:
        ...

    def list_model_usage(self, user_id: str) -> list[ModelUsage]:
        ...

    def get_promo_code(self, code: str) -> Optional[PromoCode]:
        ...

    def create_promo_code(self, promo: PromoCode) -> Optional[PromoCode]:
        """
        Insert a promo code.

        Returns:
            The stored code, or None if the code text already exists
        """
        ...

    def list_promo_redemptions(self, limit: int = 100) -> list[PromoRedemption]:
        """Redemptions with their code and user, most recent first."""
        ...

    def set_subscription(
        self,
        user_id: str,
        tier: Optional[SubscriptionTier],
        subscription_status: Optional[str],
    ) -> None:
        """Update tier and/or subscription status; None leaves a field unchanged."""
        ...


@runtime_checkable
class IAccessGate(Protocol):
    """Interface for access decisions and progression."""

    async def is_admin(self, user_id: str) -> bool:
        """Whether the user is an admin (flag or configured allowlist)."""
        ...

    async def can_access_model(self, user_id: str, model_name: str) -> bool:
        """
        Whether the user may generate with a model.

        True for admins, users whose tier is in the model's allowed
        tiers, users at or above the model's min_level, and users with
        an explicit unlock.
        """
        ...

    async def require_model_access(self, user_id: str, model_name: str) -> None:
        """
        Raises:
            ModelAccessDeniedError: If can_access_model is False
        """
        ...

    async def record_usage(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        cost_credits: Decimal = Decimal("0"),
    ) -> LevelProgress:
        """Record a completed generation and return the level delta."""
        ...

    async def set_tier(
        self,
        user_id: str,
        tier: Optional[SubscriptionTier] = None,
        subscription_status: Optional[str] = None,
    ) -> None:
        """Apply a subscription change from the billing bridge."""
        ...
