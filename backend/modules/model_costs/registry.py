"""
Model cost registry implementations.

- StaticModelCostRegistry: Uses injected entries (tests, local runs from YAML)
- SupabaseModelCostRegistry: Reads the model_costs table, cached with a TTL
"""

import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from supabase import Client

from shared.model_config import ModelConfig, load_model_catalog
from shared.repository import BaseRepository

from .exceptions import ModelNotFoundError
from .models import ModelCost

logger = logging.getLogger(__name__)


def _sorted_active(entries: Iterable[ModelCost]) -> list[ModelCost]:
    active = [entry for entry in entries if entry.is_active]
    return sorted(active, key=lambda m: (m.cost_per_generation, m.model_name))


def model_cost_from_config(config: ModelConfig) -> ModelCost:
    """Convert a catalog entry into a ModelCost."""
    return ModelCost(
        model_name=config.model_name,
        cost_per_generation=config.cost_per_generation,
        allowed_tiers=config.allowed_tiers,
        min_level=config.min_level,
        provider=config.provider,
        generation_type=config.generation_type,
        is_active=config.is_active,
    )


class StaticModelCostRegistry:
    """
    Registry using injected cost entries.

    Accepts entries as a constructor parameter so tests can inject
    exact prices. refresh() is a no-op unless a catalog path was given.
    """

    def __init__(
        self,
        entries: Optional[Iterable[ModelCost]] = None,
        catalog_path: Optional[Path] = None,
    ):
        self._catalog_path = catalog_path
        self._entries: dict[str, ModelCost] = {}
        if entries is not None:
            self._entries = {entry.model_name: entry for entry in entries}
        elif catalog_path is not None:
            self.refresh()

    def get_cost(self, model_name: str) -> ModelCost:
        entry = self._entries.get(model_name)
        if entry is None or not entry.is_active:
            raise ModelNotFoundError(model_name)
        return entry

    def list_models(self) -> list[ModelCost]:
        return _sorted_active(self._entries.values())

    def refresh(self) -> None:
        if self._catalog_path is None:
            return
        catalog = load_model_catalog(self._catalog_path)
        self._entries = {
            name: model_cost_from_config(config) for name, config in catalog.items()
        }
        logger.info(f"Loaded {len(self._entries)} model costs from {self._catalog_path}")


def registry_from_catalog(catalog_path: Path) -> StaticModelCostRegistry:
    """Build a static registry from the YAML model catalog."""
    return StaticModelCostRegistry(catalog_path=catalog_path)


class SupabaseModelCostRegistry(BaseRepository[ModelCost]):
    """
    Registry backed by the model_costs table.

    Rows are cached for cache_ttl seconds. An expired cache is reloaded
    on the next lookup; refresh() reloads immediately.
    """

    def __init__(self, db: Client, cache_ttl: int = 300):
        super().__init__(db)
        self._cache_ttl = cache_ttl
        self._cache: dict[str, ModelCost] = {}
        self._cache_timestamp: Optional[datetime] = None
        self._lock = threading.Lock()

    def _is_cache_valid(self) -> bool:
        """Check if cache is still valid."""
        if not self._cache_timestamp:
            return False
        age = (datetime.now(timezone.utc) - self._cache_timestamp).total_seconds()
        return age < self._cache_ttl

    def _ensure_loaded(self) -> None:
        if not self._is_cache_valid():
            self.refresh()

    def get_cost(self, model_name: str) -> ModelCost:
        self._ensure_loaded()
        entry = self._cache.get(model_name)
        if entry is None or not entry.is_active:
            raise ModelNotFoundError(model_name)
        return entry

    def list_models(self) -> list[ModelCost]:
        self._ensure_loaded()
        return _sorted_active(self._cache.values())

    def refresh(self) -> None:
        result = self._execute(
            "list_model_costs",
            self._db.table("model_costs").select("*"),
        )
        entries = {row["model_name"]: self._map_to_cost(row) for row in result.data}
        with self._lock:
            self._cache = entries
            self._cache_timestamp = datetime.now(timezone.utc)
        logger.debug(f"Refreshed model cost cache with {len(entries)} models")

    @staticmethod
    def _map_to_cost(row: dict) -> ModelCost:
        return ModelCost(
            model_name=row["model_name"],
            cost_per_generation=Decimal(str(row["cost_per_generation"])),
            allowed_tiers=tuple(row.get("allowed_tiers") or ()),
            min_level=row.get("min_level"),
            provider=row.get("provider"),
            generation_type=row.get("generation_type") or "image",
            is_active=row.get("is_active", True),
        )
