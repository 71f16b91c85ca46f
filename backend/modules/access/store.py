"""
Access store implementations.

- InMemoryAccessStore: One lock guards all state; each method is atomic.
- SupabaseAccessStore: Atomic operations are Postgres functions defined
  in migrations/002_access_progression.sql.
"""

import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from postgrest import APIError
from supabase import Client

from modules.billing.models import GenerationType, SubscriptionTier
from shared.exceptions import StoreError
from shared.repository import BaseRepository

from .models import (
    AccessType,
    ModelUsage,
    PromoCode,
    PromoRedemption,
    PromoRedemptionResult,
    RedemptionFailure,
    UsageRecordOutcome,
    UserProfile,
)

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAccessStore:
    """In-memory access store for tests and local runs."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[str, UserProfile] = {}
        self._codes: dict[str, PromoCode] = {}
        self._redemptions: dict[str, dict[str, datetime]] = {}  # code id -> user id -> time
        self._usage: dict[str, dict[str, ModelUsage]] = {}
        self._unlocks: dict[str, dict[str, datetime]] = {}

    def _user(self, user_id: str) -> UserProfile:
        user = self._users.get(user_id)
        if user is None:
            user = UserProfile(id=user_id)
            self._users[user_id] = user
        return user

    def add_user(self, profile: UserProfile) -> UserProfile:
        """Insert or replace a profile. Used to seed admins and fixtures."""
        with self._lock:
            self._users[profile.id] = profile
            return profile

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._users.get(user_id)

    def ensure_user(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        with self._lock:
            user = self._user(user_id)
            if email and user.email is None:
                user = user.model_copy(update={"email": email})
                self._users[user_id] = user
            return user

    def redeem_promo_code(self, user_id: str, code: str, now: datetime) -> PromoRedemptionResult:
        with self._lock:
            promo = self._codes.get(code)
            if promo is None:
                return PromoRedemptionResult(success=False, reason=RedemptionFailure.NOT_FOUND)
            if not promo.is_active:
                return PromoRedemptionResult(success=False, reason=RedemptionFailure.INACTIVE)
            if promo.expires_at is not None and promo.expires_at <= now:
                return PromoRedemptionResult(success=False, reason=RedemptionFailure.EXPIRED)

            redeemed_by = self._redemptions.setdefault(promo.id, {})
            if user_id in redeemed_by:
                return PromoRedemptionResult(
                    success=False,
                    reason=RedemptionFailure.ALREADY_REDEEMED,
                )
            if promo.max_uses is not None and promo.used_count >= promo.max_uses:
                return PromoRedemptionResult(success=False, reason=RedemptionFailure.EXHAUSTED)

            self._codes[code] = promo.model_copy(update={"used_count": promo.used_count + 1})
            redeemed_by[user_id] = now
            self._user(user_id)
            return PromoRedemptionResult(success=True, access_type=promo.access_type)

    def has_promo_access(self, user_id: str, access_type: AccessType) -> bool:
        with self._lock:
            return any(
                user_id in self._redemptions.get(promo.id, {})
                for promo in self._codes.values()
                if promo.access_type == access_type
            )

    def record_model_usage(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        cost_credits: Decimal,
    ) -> UsageRecordOutcome:
        with self._lock:
            now = _now()
            user = self._user(user_id)
            usage = self._usage.setdefault(user_id, {})

            existing = usage.get(model_name)
            is_new = existing is None
            if is_new:
                usage[model_name] = ModelUsage(
                    model_name=model_name,
                    generation_type=generation_type,
                    uses=1,
                    cost_credits=cost_credits,
                    first_used_at=now,
                    last_used_at=now,
                )
            else:
                usage[model_name] = existing.model_copy(
                    update={
                        "uses": existing.uses + 1,
                        "cost_credits": existing.cost_credits + cost_credits,
                        "last_used_at": now,
                    }
                )

            user = user.model_copy(
                update={
                    "total_generations": user.total_generations + 1,
                    "unique_models_used": user.unique_models_used + (1 if is_new else 0),
                }
            )
            self._users[user_id] = user
            return UsageRecordOutcome(profile=user, is_new_model=is_new)

    def raise_level(self, user_id: str, level: int, now: datetime) -> tuple[int, int]:
        with self._lock:
            user = self._user(user_id)
            previous = user.secret_level
            if level > previous:
                self._users[user_id] = user.model_copy(
                    update={"secret_level": level, "last_level_up": now}
                )
                return previous, level
            return previous, previous

    def unlock_model(self, user_id: str, model_name: str) -> bool:
        with self._lock:
            unlocked = self._unlocks.setdefault(user_id, {})
            if model_name in unlocked:
                return False
            unlocked[model_name] = _now()
            return True

    def list_unlocked_models(self, user_id: str) -> list[str]:
        with self._lock:
            unlocked = self._unlocks.get(user_id, {})
            return sorted(unlocked, key=lambda name: unlocked[name])

    def list_model_usage(self, user_id: str) -> list[ModelUsage]:
        with self._lock:
            usage = list(self._usage.get(user_id, {}).values())
        return sorted(usage, key=lambda u: u.first_used_at)

    def get_promo_code(self, code: str) -> Optional[PromoCode]:
        with self._lock:
            return self._codes.get(code)

    def create_promo_code(self, promo: PromoCode) -> Optional[PromoCode]:
        with self._lock:
            if promo.code in self._codes:
                return None
            self._codes[promo.code] = promo
            return promo

    def list_promo_redemptions(self, limit: int = 100) -> list[PromoRedemption]:
        with self._lock:
            redemptions = [
                PromoRedemption(promo=promo, user=self._user(user_id), redeemed_at=redeemed_at)
                for promo in self._codes.values()
                for user_id, redeemed_at in self._redemptions.get(promo.id, {}).items()
            ]
        redemptions.sort(key=lambda r: r.redeemed_at, reverse=True)
        return redemptions[:limit]

    def set_subscription(
        self,
        user_id: str,
        tier: Optional[SubscriptionTier],
        subscription_status: Optional[str],
    ) -> None:
        with self._lock:
            user = self._user(user_id)
            update: dict[str, Any] = {}
            if tier is not None:
                update["tier"] = tier
            if subscription_status is not None:
                update["subscription_status"] = subscription_status
            self._users[user_id] = user.model_copy(update=update)


class SupabaseAccessStore(BaseRepository[UserProfile]):
    """Access store backed by Supabase tables and functions."""

    def __init__(self, db: Client):
        super().__init__(db)

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        result = self._execute(
            "get_user",
            self._db.table("users").select("*").eq("id", user_id).limit(1),
        )
        if not result.data:
            return None
        return self._map_to_profile(result.data[0])

    def ensure_user(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        existing = self.get_user(user_id)
        if existing is not None:
            return existing
        self._execute(
            "ensure_user",
            self._db.table("users").upsert(
                {"id": user_id, "email": email},
                on_conflict="id",
                ignore_duplicates=True,
            ),
        )
        return self.get_user(user_id) or UserProfile(id=user_id, email=email)

    def redeem_promo_code(self, user_id: str, code: str, now: datetime) -> PromoRedemptionResult:
        data = self._rpc(
            "redeem_promo_code",
            {"code_text": code, "user_uuid": user_id},
        )
        if data.get("success"):
            return PromoRedemptionResult(
                success=True,
                access_type=AccessType(data["access_type"]),
            )
        return PromoRedemptionResult(
            success=False,
            reason=RedemptionFailure(data["reason"]),
        )

    def has_promo_access(self, user_id: str, access_type: AccessType) -> bool:
        return bool(
            self._rpc(
                "user_has_promo_access",
                {"user_uuid": user_id, "access": access_type.value},
            )
        )

    def record_model_usage(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        cost_credits: Decimal,
    ) -> UsageRecordOutcome:
        data = self._rpc(
            "track_model_usage",
            {
                "p_user_id": user_id,
                "p_model_name": model_name,
                "p_generation_type": generation_type.value,
                "p_cost_credits": str(cost_credits),
            },
        )
        return UsageRecordOutcome(
            profile=self._map_to_profile(data["user"]),
            is_new_model=data["is_new_model"],
        )

    def raise_level(self, user_id: str, level: int, now: datetime) -> tuple[int, int]:
        data = self._rpc(
            "raise_user_level",
            {"p_user_id": user_id, "p_level": level},
        )
        return data["previous_level"], data["current_level"]

    def unlock_model(self, user_id: str, model_name: str) -> bool:
        result = self._execute(
            "unlock_model",
            self._db.table("user_unlocked_models").upsert(
                {"user_id": user_id, "model_name": model_name},
                on_conflict="user_id,model_name",
                ignore_duplicates=True,
            ),
        )
        return bool(result.data)

    def list_unlocked_models(self, user_id: str) -> list[str]:
        result = self._execute(
            "list_unlocked_models",
            self._db.table("user_unlocked_models")
            .select("model_name")
            .eq("user_id", user_id)
            .order("unlocked_at"),
        )
        return [row["model_name"] for row in result.data]

    def list_model_usage(self, user_id: str) -> list[ModelUsage]:
        result = self._execute(
            "list_model_usage",
            self._db.table("user_model_usage")
            .select("*")
            .eq("user_id", user_id)
            .order("first_used_at"),
        )
        return [
            ModelUsage(
                model_name=row["model_name"],
                generation_type=GenerationType(row["generation_type"]),
                uses=row["uses"],
                cost_credits=Decimal(str(row["cost_credits"])),
                first_used_at=row["first_used_at"],
                last_used_at=row["last_used_at"],
            )
            for row in result.data
        ]

    def get_promo_code(self, code: str) -> Optional[PromoCode]:
        result = self._execute(
            "get_promo_code",
            self._db.table("promo_codes").select("*").eq("code", code).limit(1),
        )
        if not result.data:
            return None
        return self._map_to_promo(result.data[0])

    def create_promo_code(self, promo: PromoCode) -> Optional[PromoCode]:
        row = {
            "id": promo.id,
            "code": promo.code,
            "description": promo.description,
            "access_type": promo.access_type.value,
            "max_uses": promo.max_uses,
            "used_count": promo.used_count,
            "expires_at": promo.expires_at.isoformat() if promo.expires_at else None,
            "is_active": promo.is_active,
            "created_by": promo.created_by,
        }
        try:
            result = self._db.table("promo_codes").insert(row).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                return None
            logger.error(f"Store operation create_promo_code failed: {e.message}")
            raise StoreError("create_promo_code", str(e.message))
        return self._map_to_promo(result.data[0])

    def list_promo_redemptions(self, limit: int = 100) -> list[PromoRedemption]:
        # Embeds follow the user_promo_access foreign keys to promo_codes and users.
        result = self._execute(
            "list_promo_redemptions",
            self._db.table("user_promo_access")
            .select("redeemed_at, promo_codes(*), users(*)")
            .order("redeemed_at", desc=True)
            .limit(limit),
        )
        return [
            PromoRedemption(
                promo=self._map_to_promo(row["promo_codes"]),
                user=self._map_to_profile(row["users"]),
                redeemed_at=row["redeemed_at"],
            )
            for row in result.data
        ]

    def set_subscription(
        self,
        user_id: str,
        tier: Optional[SubscriptionTier],
        subscription_status: Optional[str],
    ) -> None:
        update: dict[str, Any] = {"updated_at": _now().isoformat()}
        if tier is not None:
            update["tier"] = tier.value
        if subscription_status is not None:
            update["subscription_status"] = subscription_status
        self._execute(
            "set_subscription",
            self._db.table("users").update(update).eq("id", user_id),
        )

    # -- row mapping -------------------------------------------------------

    @staticmethod
    def _map_to_profile(row: dict[str, Any]) -> UserProfile:
        return UserProfile(
            id=row["id"],
            email=row.get("email"),
            is_admin=row.get("is_admin") or False,
            secret_level=row.get("secret_level") or 1,
            total_generations=row.get("total_generations") or 0,
            unique_models_used=row.get("unique_models_used") or 0,
            tier=SubscriptionTier(row.get("tier") or "free"),
            subscription_status=row.get("subscription_status"),
            last_level_up=row.get("last_level_up"),
        )

    @staticmethod
    def _map_to_promo(row: dict[str, Any]) -> PromoCode:
        return PromoCode(
            id=str(row["id"]),
            code=row["code"],
            description=row.get("description"),
            access_type=AccessType(row["access_type"]),
            max_uses=row.get("max_uses"),
            used_count=row.get("used_count") or 0,
            expires_at=row.get("expires_at"),
            is_active=row.get("is_active", True),
            created_by=row.get("created_by"),
            created_at=row["created_at"],
        )
