"""
Base repository class for database access.

Provides a common abstraction layer for all Supabase-backed stores,
encapsulating client access and translating PostgREST failures into
StoreError so services never see driver exceptions.
"""

import logging
from typing import Any, TypeVar, Generic

from postgrest import APIError
from supabase import Client

from .exceptions import StoreError


T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    Provides common functionality for database operations:
    - Supabase client access via self._db
    - _execute() / _rpc() wrappers that raise StoreError on failure
    - Generic type parameter for model type hints

    Subclasses should implement domain-specific data access methods
    and handle dict-to-Pydantic model mapping internally.

    Example:
        class PromoStore(BaseRepository[PromoCode]):
            def get_code(self, code: str) -> Optional[PromoCode]:
                result = self._execute(
                    "get_code",
                    self._db.table("promo_codes").select("*").eq("code", code),
                )
                if not result.data:
                    return None
                return self._map_to_code(result.data[0])
    """

    def __init__(self, db: Client) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
        """
        self._db = db

    def _execute(self, operation: str, query: Any) -> Any:
        """Execute a PostgREST query builder, raising StoreError on failure."""
        try:
            return query.execute()
        except APIError as e:
            logger.error(f"Store operation {operation} failed: {e.message}")
            raise StoreError(operation, str(e.message))

    def _rpc(self, function: str, params: dict[str, Any]) -> Any:
        """
        Call a Postgres function and return its JSON result.

        Every mutation of financial or access state goes through a single
        function call so it commits or rolls back as one transaction.
        """
        result = self._execute(function, self._db.rpc(function, params))
        return result.data
