"""
Access module.

Promo codes, admin override, level progression and model unlocks.

Public API:
- IAccessGate: Interface the credit service and billing bridge depend on
- IAccessStore: Interface for the transactional access store
- AccessService: Access decisions and progression
- LevelPolicy: Configurable level thresholds
- InMemoryAccessStore / SupabaseAccessStore: Store implementations
"""

from .interfaces import IAccessGate, IAccessStore
from .models import (
    AccessType,
    RedemptionFailure,
    UserProfile,
    PromoCode,
    PromoRedemption,
    PromoRedemptionResult,
    ModelUsage,
    LevelProgress,
    Progression,
    UnlockResult,
)
from .exceptions import (
    AccessError,
    ModelAccessDeniedError,
    SecretAccessRequiredError,
    AdminRequiredError,
    PromoCodeNotFoundError,
    PromoCodeInactiveError,
    PromoCodeExpiredError,
    PromoCodeExhaustedError,
    PromoCodeAlreadyRedeemedError,
    PromoCodeGenerationError,
    REDEMPTION_ERRORS,
)
from .levels import LevelPolicy, level_title
from .store import InMemoryAccessStore, SupabaseAccessStore
from .service import AccessService, generate_promo_code

__all__ = [
    # Interfaces
    "IAccessGate",
    "IAccessStore",
    # Models
    "AccessType",
    "RedemptionFailure",
    "UserProfile",
    "PromoCode",
    "PromoRedemption",
    "PromoRedemptionResult",
    "ModelUsage",
    "LevelProgress",
    "Progression",
    "UnlockResult",
    # Exceptions
    "AccessError",
    "ModelAccessDeniedError",
    "SecretAccessRequiredError",
    "AdminRequiredError",
    "PromoCodeNotFoundError",
    "PromoCodeInactiveError",
    "PromoCodeExpiredError",
    "PromoCodeExhaustedError",
    "PromoCodeAlreadyRedeemedError",
    "PromoCodeGenerationError",
    "REDEMPTION_ERRORS",
    # Implementations
    "LevelPolicy",
    "level_title",
    "InMemoryAccessStore",
    "SupabaseAccessStore",
    "AccessService",
    "generate_promo_code",
]
