"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

The store backend is chosen by settings.store_backend: "memory" wires
the in-memory ledger and access store, "supabase" wires the Supabase
ones. Both share the same services.
"""

from typing import TYPE_CHECKING, Optional

from fastapi import Depends

from shared.config import Settings, get_settings
from shared.models import AuthenticatedUser

from .middleware.auth import get_current_user

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.access import AccessService, IAccessStore
    from modules.billing import CreditService, ICreditLedger, StripeBillingBridge
    from modules.generations import GenerationGateway
    from modules.model_costs import IModelCostRegistry
    from shared.model_config import ModelConfig


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to clear all cached services for testing.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self._catalog: "dict[str, ModelConfig] | None" = None
        self._registry: "IModelCostRegistry | None" = None
        self._ledger: "ICreditLedger | None" = None
        self._access_store: "IAccessStore | None" = None
        self._access: "AccessService | None" = None
        self._credits: "CreditService | None" = None
        self._stripe_bridge: "StripeBillingBridge | None" = None
        self._generations: "GenerationGateway | None" = None

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def uses_supabase(self) -> bool:
        return self.settings.store_backend == "supabase"

    @property
    def catalog(self) -> "dict[str, ModelConfig]":
        """Get the model catalog loaded from YAML."""
        if self._catalog is None:
            from shared.model_config import load_model_catalog
            self._catalog = load_model_catalog(self.settings.model_catalog_path)
        return self._catalog

    @property
    def registry(self) -> "IModelCostRegistry":
        """Get the model cost registry."""
        if self._registry is None:
            if self.uses_supabase:
                from modules.model_costs import SupabaseModelCostRegistry
                from shared.database import get_supabase_client
                self._registry = SupabaseModelCostRegistry(
                    get_supabase_client(),
                    cache_ttl=self.settings.model_cost_cache_ttl,
                )
            else:
                from modules.model_costs import registry_from_catalog
                self._registry = registry_from_catalog(self.settings.model_catalog_path)
        return self._registry

    @property
    def ledger(self) -> "ICreditLedger":
        """Get the credit ledger."""
        if self._ledger is None:
            if self.uses_supabase:
                from modules.billing import SupabaseCreditLedger
                from shared.database import get_supabase_client
                self._ledger = SupabaseCreditLedger(get_supabase_client())
            else:
                from modules.billing import InMemoryCreditLedger
                self._ledger = InMemoryCreditLedger()
        return self._ledger

    @property
    def access_store(self) -> "IAccessStore":
        """Get the access store."""
        if self._access_store is None:
            if self.uses_supabase:
                from modules.access import SupabaseAccessStore
                from shared.database import get_supabase_client
                self._access_store = SupabaseAccessStore(get_supabase_client())
            else:
                from modules.access import InMemoryAccessStore
                self._access_store = InMemoryAccessStore()
        return self._access_store

    @property
    def access(self) -> "AccessService":
        """Get the access service instance."""
        if self._access is None:
            from modules.access import AccessService, LevelPolicy
            settings = self.settings
            self._access = AccessService(
                store=self.access_store,
                registry=self.registry,
                policy=LevelPolicy(
                    unique_model_step=settings.level_unique_model_step,
                    generation_step=settings.level_generation_step,
                    max_level=settings.max_level,
                ),
                admin_emails=settings.admin_emails,
            )
        return self._access

    @property
    def credits(self) -> "CreditService":
        """Get the credit service instance."""
        if self._credits is None:
            from modules.billing import CreditService
            self._credits = CreditService(
                ledger=self.ledger,
                registry=self.registry,
                access=self.access,
                max_credit_grant=self.settings.max_credit_grant,
                admin_free_generations=self.settings.admin_free_generations,
            )
        return self._credits

    @property
    def stripe_bridge(self) -> "StripeBillingBridge":
        """Get the Stripe webhook bridge."""
        if self._stripe_bridge is None:
            from modules.billing import StripeBillingBridge, SubscriptionTier
            settings = self.settings
            price_tiers = {}
            if settings.stripe_light_price_id:
                price_tiers[settings.stripe_light_price_id] = SubscriptionTier.LIGHT
            if settings.stripe_heavy_price_id:
                price_tiers[settings.stripe_heavy_price_id] = SubscriptionTier.HEAVY
            self._stripe_bridge = StripeBillingBridge(
                ledger=self.ledger,
                access=self.access,
                webhook_secret=settings.stripe_webhook_secret,
                monthly_allowances={
                    SubscriptionTier.LIGHT: settings.light_monthly_credits,
                    SubscriptionTier.HEAVY: settings.heavy_monthly_credits,
                },
                price_tiers=price_tiers,
                api_key=settings.stripe_secret_key or None,
            )
        return self._stripe_bridge

    @property
    def generations(self) -> "GenerationGateway":
        """Get the generation gateway."""
        if self._generations is None:
            from modules.generations import GenerationGateway, get_providers
            self._generations = GenerationGateway(
                credits=self.credits,
                access=self.access,
                catalog=self.catalog,
                providers=get_providers(self.settings),
            )
        return self._generations

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._catalog = None
        self._registry = None
        self._ledger = None
        self._access_store = None
        self._access = None
        self._credits = None
        self._stripe_bridge = None
        self._generations = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_model_cost_registry() -> "IModelCostRegistry":
    """FastAPI dependency for the model cost registry."""
    return get_container().registry


def get_credit_service() -> "CreditService":
    """FastAPI dependency for credit service."""
    return get_container().credits


def get_access_service() -> "AccessService":
    """FastAPI dependency for access service."""
    return get_container().access


def get_stripe_bridge() -> "StripeBillingBridge":
    """FastAPI dependency for the Stripe bridge."""
    return get_container().stripe_bridge


def get_generation_gateway() -> "GenerationGateway":
    """FastAPI dependency for the generation gateway."""
    return get_container().generations


async def get_registered_user(
    user: AuthenticatedUser = Depends(get_current_user),
    access=Depends(get_access_service),
) -> AuthenticatedUser:
    """
    Require authentication and make sure the user has a users row.

    Supabase creates the row on sign-up; this covers the in-memory store
    and users created before the trigger existed.
    """
    await access.ensure_user(user.id, user.email)
    return user
