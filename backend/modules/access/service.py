"""
Access and progression service.

Decides who may use which model and tracks level progression. Admin
status comes from the users table or a configured email allowlist.
"""

import logging
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from modules.billing.models import GenerationType, SubscriptionTier
from modules.model_costs import IModelCostRegistry, ModelCost, ModelNotFoundError

from .exceptions import (
    AdminRequiredError,
    ModelAccessDeniedError,
    PromoCodeGenerationError,
    REDEMPTION_ERRORS,
    SecretAccessRequiredError,
)
from .interfaces import IAccessStore
from .levels import LevelPolicy, level_title
from .models import (
    AccessType,
    LevelProgress,
    Progression,
    PromoCode,
    PromoRedemption,
    PromoRedemptionResult,
    UnlockResult,
    UserProfile,
)

logger = logging.getLogger(__name__)

PROMO_PREFIX = "SECRET"
PROMO_CODE_ATTEMPTS = 10
PREMIUM_TIERS = frozenset({"premium", SubscriptionTier.HEAVY.value})
# Stripe statuses under which a paid tier still grants access. A tier set
# without a status (seeded or granted by an admin) counts as paid.
PAID_STATUSES = frozenset({"active", "trialing"})

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_promo_code() -> str:
    """SECRET + base36 millisecond timestamp + 4 random base36 characters."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{PROMO_PREFIX}{_to_base36(int(time.time() * 1000))}{suffix}"


def normalize_code(code: str) -> str:
    return code.strip().upper()


class AccessService:
    """
    Access gate and level progression.

    Store operations that must be atomic (redemption, usage recording,
    level raise) are single store calls; this class only composes them.
    """

    def __init__(
        self,
        store: IAccessStore,
        registry: IModelCostRegistry,
        policy: Optional[LevelPolicy] = None,
        admin_emails: Iterable[str] = (),
    ):
        self._store = store
        self._registry = registry
        self._policy = policy or LevelPolicy()
        self._admin_emails = {email.lower() for email in admin_emails}

    @property
    def policy(self) -> LevelPolicy:
        return self._policy

    # -- users -------------------------------------------------------------

    async def ensure_user(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        return self._store.ensure_user(user_id, email)

    async def get_profile(self, user_id: str) -> UserProfile:
        """Get a user's profile; users without a row are level 1, free tier."""
        return self._store.get_user(user_id) or UserProfile(id=user_id)

    def _is_admin(self, profile: UserProfile) -> bool:
        if profile.is_admin:
            return True
        return bool(profile.email) and profile.email.lower() in self._admin_emails

    async def is_admin(self, user_id: str) -> bool:
        return self._is_admin(await self.get_profile(user_id))

    async def require_admin(self, user_id: str) -> None:
        if not await self.is_admin(user_id):
            raise AdminRequiredError(user_id)

    # -- levels ------------------------------------------------------------

    def compute_level(self, profile: UserProfile) -> int:
        """
        A user's effective level.

        Admins are always at max_level. Otherwise the higher of the
        stored level and the level the counters qualify for.
        """
        if self._is_admin(profile):
            return self._policy.max_level
        earned = self._policy.level_for(profile.unique_models_used, profile.total_generations)
        return max(profile.secret_level, earned)

    def _models_unlocked_by_level(self, level: int) -> list[ModelCost]:
        return [
            model
            for model in self._registry.list_models()
            if model.min_level is not None and model.min_level <= level
        ]

    # -- model access ------------------------------------------------------

    def _effective_tiers(self, profile: UserProfile) -> set[str]:
        status = profile.subscription_status
        if status is None or status in PAID_STATUSES:
            tiers = {profile.tier.value}
        else:
            tiers = {SubscriptionTier.FREE.value}
        if self._store.has_promo_access(profile.id, AccessType.PREMIUM):
            tiers |= PREMIUM_TIERS
        return tiers

    async def can_access_model(self, user_id: str, model_name: str) -> bool:
        try:
            model = self._registry.get_cost(model_name)
        except ModelNotFoundError:
            return False

        profile = await self.get_profile(user_id)
        if self._is_admin(profile):
            return True
        if self._effective_tiers(profile) & set(model.allowed_tiers):
            return True
        if model.min_level is not None and model.min_level <= self.compute_level(profile):
            return True
        return model_name in self._store.list_unlocked_models(user_id)

    async def require_model_access(self, user_id: str, model_name: str) -> None:
        if not await self.can_access_model(user_id, model_name):
            logger.info(f"User {user_id} denied access to {model_name}")
            raise ModelAccessDeniedError(user_id, model_name)

    async def has_secret_access(self, user_id: str) -> bool:
        if await self.is_admin(user_id):
            return True
        return self._store.has_promo_access(user_id, AccessType.SECRET_LEVEL)

    # -- promo codes -------------------------------------------------------

    async def redeem_promo_code(self, user_id: str, code: str) -> PromoRedemptionResult:
        normalized = normalize_code(code)
        result = self._store.redeem_promo_code(
            user_id,
            normalized,
            datetime.now(timezone.utc),
        )
        if result.success:
            logger.info(f"User {user_id} redeemed promo code {normalized}")
            return result

        error = REDEMPTION_ERRORS[result.reason](normalized)
        logger.info(f"User {user_id} failed to redeem {normalized}: {result.reason.value}")
        return result.model_copy(update={"error": error.message})

    async def create_promo_code(
        self,
        created_by: str,
        description: Optional[str] = None,
        max_uses: Optional[int] = 1,
        expires_at: Optional[datetime] = None,
        access_type: AccessType = AccessType.SECRET_LEVEL,
    ) -> PromoCode:
        """
        Create a promo code. Admin only.

        Raises:
            AdminRequiredError: If created_by is not an admin
            PromoCodeGenerationError: If no unique code was found
        """
        await self.require_admin(created_by)

        for _ in range(PROMO_CODE_ATTEMPTS):
            promo = PromoCode(
                id=str(uuid.uuid4()),
                code=generate_promo_code(),
                description=description or "Secret level access code",
                access_type=access_type,
                max_uses=max_uses,
                expires_at=expires_at,
                created_by=created_by,
                created_at=datetime.now(timezone.utc),
            )
            created = self._store.create_promo_code(promo)
            if created is not None:
                logger.info(f"Admin {created_by} created promo code {created.code}")
                return created

        raise PromoCodeGenerationError(PROMO_CODE_ATTEMPTS)

    async def list_promo_redemptions(self, admin_id: str, limit: int = 100) -> list[PromoRedemption]:
        """
        Promo redemptions with the redeeming users. Admin only.

        Raises:
            AdminRequiredError: If admin_id is not an admin
        """
        await self.require_admin(admin_id)
        return self._store.list_promo_redemptions(limit)

    # -- progression -------------------------------------------------------

    async def record_usage(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        cost_credits: Decimal = Decimal("0"),
    ) -> LevelProgress:
        """
        Count a completed generation towards level progression.

        Only active catalog models the user may generate with are counted.

        Raises:
            ModelNotFoundError: If the model is unknown or inactive
            ModelAccessDeniedError: If the user has no access to the model
        """
        self._registry.get_cost(model_name)
        await self.require_model_access(user_id, model_name)

        outcome = self._store.record_model_usage(
            user_id,
            model_name,
            generation_type,
            cost_credits,
        )
        profile = outcome.profile
        target = self._policy.level_for(profile.unique_models_used, profile.total_generations)
        previous, current = self._store.raise_level(
            user_id,
            target,
            datetime.now(timezone.utc),
        )

        leveled_up = current > previous
        newly_unlocked: list[str] = []
        if leveled_up:
            newly_unlocked = [
                model.model_name
                for model in self._models_unlocked_by_level(current)
                if model.min_level > previous
            ]
            logger.info(f"User {user_id} leveled up from {previous} to {current}")

        return LevelProgress(
            leveled_up=leveled_up,
            previous_level=previous,
            current_level=current,
            newly_unlocked_models=newly_unlocked,
        )

    async def get_progression(self, user_id: str) -> Progression:
        profile = await self.get_profile(user_id)
        level = self.compute_level(profile)
        next_requirements = self._policy.requirements_for(level + 1)

        unlocked = {model.model_name for model in self._models_unlocked_by_level(level)}
        unlocked.update(self._store.list_unlocked_models(user_id))

        return Progression(
            level=level,
            level_title=level_title(level),
            total_generations=profile.total_generations,
            unique_models_used=profile.unique_models_used,
            last_level_up=profile.last_level_up,
            unlocked_models=sorted(unlocked),
            model_usage=self._store.list_model_usage(user_id),
            next_level_unique_models=next_requirements[0] if next_requirements else None,
            next_level_generations=next_requirements[1] if next_requirements else None,
        )

    # -- unlocks -----------------------------------------------------------

    async def unlock_model(self, user_id: str, model_name: str) -> UnlockResult:
        """
        Explicitly unlock a model for a user with secret level access.

        Raises:
            SecretAccessRequiredError: If the user has no secret access
            ModelNotFoundError: If the model is unknown or inactive
        """
        if not await self.has_secret_access(user_id):
            raise SecretAccessRequiredError(user_id)
        self._registry.get_cost(model_name)

        inserted = self._store.unlock_model(user_id, model_name)
        if not inserted:
            return UnlockResult(
                success=True,
                message=f"{model_name} is already unlocked",
                already_unlocked=True,
            )
        logger.info(f"User {user_id} unlocked {model_name}")
        return UnlockResult(success=True, message=f"{model_name} unlocked")

    async def list_unlocked_models(self, user_id: str) -> list[str]:
        return self._store.list_unlocked_models(user_id)

    # -- billing hook ------------------------------------------------------

    async def set_tier(
        self,
        user_id: str,
        tier: Optional[SubscriptionTier] = None,
        subscription_status: Optional[str] = None,
    ) -> None:
        self._store.set_subscription(user_id, tier, subscription_status)
        logger.info(
            f"Subscription for user {user_id} set to tier={tier.value if tier else '-'} "
            f"status={subscription_status or '-'}"
        )
