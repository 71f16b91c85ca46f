"""
Credit ledger implementations.

- InMemoryCreditLedger: A lock around each operation stands in for the
  database transaction. Used for tests and local runs.
- SupabaseCreditLedger: Every mutation is one Postgres function call
  (see migrations/001_credit_ledger.sql) that locks the balance row
  with SELECT ... FOR UPDATE, so concurrent requests serialize per user.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from supabase import Client

from shared.repository import BaseRepository

from .exceptions import (
    AlreadyRefundedError,
    ChargeNotFoundError,
    DuplicateTransactionError,
    GenerationIdConflictError,
    InsufficientCreditsError,
    InvalidAmountError,
)
from .models import (
    ChargeOutcome,
    CreditBalance,
    CreditTransaction,
    GenerationCharge,
    GenerationStatus,
    GenerationType,
    ReconciliationResult,
    RefundOutcome,
    TransactionType,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCreditLedger:
    """
    In-memory credit ledger.

    Holds balances, the append-only log and generation charges in dicts.
    Every public method takes the same lock, so each call is atomic with
    respect to every other call, like a single database transaction.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._balances: dict[str, CreditBalance] = {}
        self._transactions: list[CreditTransaction] = []
        self._references: set[str] = set()
        self._charges: dict[str, GenerationCharge] = {}

    # -- internal helpers; callers hold the lock ---------------------------

    def _current(self, user_id: str) -> Decimal:
        balance = self._balances.get(user_id)
        return balance.current_balance if balance else Decimal("0")

    def _apply(
        self,
        user_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        description: str,
        reference_id: Optional[str] = None,
        model_name: Optional[str] = None,
        generation_id: Optional[str] = None,
    ) -> CreditTransaction:
        if reference_id is not None and reference_id in self._references:
            raise DuplicateTransactionError(reference_id)

        current = self._current(user_id)
        new_balance = current + amount
        if new_balance < 0:
            raise InsufficientCreditsError(
                required=-amount,
                available=current,
                user_id=user_id,
            )

        now = _now()
        existing = self._balances.get(user_id)
        self._balances[user_id] = CreditBalance(
            user_id=user_id,
            current_balance=new_balance,
            is_active=existing.is_active if existing else True,
            updated_at=now,
        )
        transaction = CreditTransaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            description=description,
            model_name=model_name,
            generation_id=generation_id,
            reference_id=reference_id,
            balance_after=new_balance,
            created_at=now,
        )
        self._transactions.append(transaction)
        if reference_id is not None:
            self._references.add(reference_id)
        return transaction

    # -- public API --------------------------------------------------------

    def get_balance(self, user_id: str) -> Optional[CreditBalance]:
        with self._lock:
            return self._balances.get(user_id)

    def append(
        self,
        user_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        description: str,
        reference_id: Optional[str] = None,
        model_name: Optional[str] = None,
        generation_id: Optional[str] = None,
    ) -> CreditTransaction:
        if amount == 0:
            raise InvalidAmountError(amount, "Amount must be non-zero")
        with self._lock:
            return self._apply(
                user_id,
                amount,
                transaction_type,
                description,
                reference_id=reference_id,
                model_name=model_name,
                generation_id=generation_id,
            )

    def charge_generation(
        self,
        user_id: str,
        generation_id: str,
        model_name: str,
        generation_type: GenerationType,
        amount: Decimal,
    ) -> ChargeOutcome:
        if amount < 0:
            raise InvalidAmountError(amount, "Charge amount cannot be negative")

        with self._lock:
            existing = self._charges.get(generation_id)
            if existing is not None:
                if existing.user_id != user_id:
                    raise GenerationIdConflictError(generation_id)
                if existing.status == GenerationStatus.REFUNDED:
                    raise AlreadyRefundedError(generation_id)
                return ChargeOutcome(
                    charge=existing,
                    balance_after=existing.balance_after,
                    already_charged=True,
                )

            transaction = None
            if amount > 0:
                transaction = self._apply(
                    user_id,
                    -amount,
                    TransactionType.CREDIT_USED,
                    f"Generation with {model_name}",
                    model_name=model_name,
                    generation_id=generation_id,
                )

            now = _now()
            charge = GenerationCharge(
                generation_id=generation_id,
                user_id=user_id,
                model_name=model_name,
                generation_type=generation_type,
                amount=amount,
                status=GenerationStatus.CHARGED,
                balance_after=self._current(user_id),
                created_at=now,
                updated_at=now,
            )
            self._charges[generation_id] = charge
            return ChargeOutcome(
                charge=charge,
                transaction=transaction,
                balance_after=charge.balance_after,
            )

    def refund_generation(self, generation_id: str, reason: str) -> RefundOutcome:
        with self._lock:
            charge = self._charges.get(generation_id)
            if charge is None:
                raise ChargeNotFoundError(generation_id)
            if charge.status == GenerationStatus.REFUNDED:
                raise AlreadyRefundedError(generation_id)

            transaction = None
            if charge.amount > 0:
                transaction = self._apply(
                    charge.user_id,
                    charge.amount,
                    TransactionType.REFUND,
                    reason,
                    model_name=charge.model_name,
                    generation_id=generation_id,
                )

            refunded = charge.model_copy(
                update={"status": GenerationStatus.REFUNDED, "updated_at": _now()}
            )
            self._charges[generation_id] = refunded
            return RefundOutcome(
                charge=refunded,
                transaction=transaction,
                balance_after=self._current(charge.user_id),
            )

    def complete_generation(self, generation_id: str) -> GenerationCharge:
        with self._lock:
            charge = self._charges.get(generation_id)
            if charge is None:
                raise ChargeNotFoundError(generation_id)
            if charge.status == GenerationStatus.REFUNDED:
                raise AlreadyRefundedError(generation_id)
            if charge.status == GenerationStatus.COMPLETED:
                return charge

            completed = charge.model_copy(
                update={"status": GenerationStatus.COMPLETED, "updated_at": _now()}
            )
            self._charges[generation_id] = completed
            return completed

    def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditTransaction]:
        with self._lock:
            history = [t for t in reversed(self._transactions) if t.user_id == user_id]
        return history[offset : offset + limit]

    def get_charge(self, generation_id: str) -> Optional[GenerationCharge]:
        with self._lock:
            return self._charges.get(generation_id)

    def list_charges(
        self,
        status: Optional[GenerationStatus] = None,
        older_than: Optional[datetime] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[GenerationCharge]:
        with self._lock:
            charges = list(self._charges.values())

        if status is not None:
            charges = [c for c in charges if c.status == status]
        if older_than is not None:
            charges = [c for c in charges if c.created_at < older_than]
        if user_id is not None:
            charges = [c for c in charges if c.user_id == user_id]

        charges.sort(key=lambda c: c.created_at)
        return charges[:limit]

    def list_user_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._balances)

    def reconcile_balance(self, user_id: str) -> ReconciliationResult:
        with self._lock:
            computed = sum(
                (t.amount for t in self._transactions if t.user_id == user_id),
                Decimal("0"),
            )
            existing = self._balances.get(user_id)
            cached = existing.current_balance if existing else Decimal("0")
            repaired = existing is not None and cached != computed
            if repaired:
                logger.warning(
                    f"Balance drift for user {user_id}: cached {cached}, log {computed}"
                )
                self._balances[user_id] = existing.model_copy(
                    update={"current_balance": computed, "updated_at": _now()}
                )

        return ReconciliationResult(
            user_id=user_id,
            cached_balance=cached,
            computed_balance=computed,
            repaired=repaired,
        )


class SupabaseCreditLedger(BaseRepository[CreditTransaction]):
    """
    Credit ledger backed by Supabase.

    Reads go through PostgREST table queries. Mutations call the ledger_*
    Postgres functions, which return a JSON object whose "status" field
    names the outcome; expected failures come back as statuses rather
    than SQL errors so they can be mapped to typed exceptions here.
    """

    def __init__(self, db: Client):
        super().__init__(db)

    def get_balance(self, user_id: str) -> Optional[CreditBalance]:
        result = self._execute(
            "get_balance",
            self._db.table("credit_balances").select("*").eq("user_id", user_id).limit(1),
        )
        if not result.data:
            return None
        return self._map_to_balance(result.data[0])

    def append(
        self,
        user_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        description: str,
        reference_id: Optional[str] = None,
        model_name: Optional[str] = None,
        generation_id: Optional[str] = None,
    ) -> CreditTransaction:
        if amount == 0:
            raise InvalidAmountError(amount, "Amount must be non-zero")

        data = self._rpc(
            "ledger_append",
            {
                "p_user_id": user_id,
                "p_amount": str(amount),
                "p_transaction_type": transaction_type.value,
                "p_description": description,
                "p_reference_id": reference_id,
                "p_model_name": model_name,
                "p_generation_id": generation_id,
            },
        )
        status = data["status"]
        if status == "duplicate":
            raise DuplicateTransactionError(reference_id)
        if status == "insufficient_credits":
            raise InsufficientCreditsError(
                required=-amount,
                available=Decimal(str(data["available"])),
                user_id=user_id,
            )
        return self._map_to_transaction(data["transaction"])

    def charge_generation(
        self,
        user_id: str,
        generation_id: str,
        model_name: str,
        generation_type: GenerationType,
        amount: Decimal,
    ) -> ChargeOutcome:
        if amount < 0:
            raise InvalidAmountError(amount, "Charge amount cannot be negative")

        data = self._rpc(
            "ledger_charge_generation",
            {
                "p_user_id": user_id,
                "p_generation_id": generation_id,
                "p_model_name": model_name,
                "p_generation_type": generation_type.value,
                "p_amount": str(amount),
            },
        )
        status = data["status"]
        if status == "conflict":
            raise GenerationIdConflictError(generation_id)
        if status == "refunded":
            raise AlreadyRefundedError(generation_id)
        if status == "insufficient_credits":
            raise InsufficientCreditsError(
                required=amount,
                available=Decimal(str(data["available"])),
                user_id=user_id,
            )
        return ChargeOutcome(
            charge=self._map_to_charge(data["charge"]),
            transaction=self._map_optional_transaction(data.get("transaction")),
            balance_after=Decimal(str(data["balance_after"])),
            already_charged=status == "already_charged",
        )

    def refund_generation(self, generation_id: str, reason: str) -> RefundOutcome:
        data = self._rpc(
            "ledger_refund_generation",
            {"p_generation_id": generation_id, "p_reason": reason},
        )
        status = data["status"]
        if status == "not_found":
            raise ChargeNotFoundError(generation_id)
        if status == "already_refunded":
            raise AlreadyRefundedError(generation_id)
        return RefundOutcome(
            charge=self._map_to_charge(data["charge"]),
            transaction=self._map_optional_transaction(data.get("transaction")),
            balance_after=Decimal(str(data["balance_after"])),
        )

    def complete_generation(self, generation_id: str) -> GenerationCharge:
        data = self._rpc(
            "ledger_complete_generation",
            {"p_generation_id": generation_id},
        )
        status = data["status"]
        if status == "not_found":
            raise ChargeNotFoundError(generation_id)
        if status == "refunded":
            raise AlreadyRefundedError(generation_id)
        return self._map_to_charge(data["charge"])

    def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditTransaction]:
        result = self._execute(
            "get_transactions",
            self._db.table("credit_transactions")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
        )
        return [self._map_to_transaction(row) for row in result.data]

    def get_charge(self, generation_id: str) -> Optional[GenerationCharge]:
        result = self._execute(
            "get_charge",
            self._db.table("generation_charges")
            .select("*")
            .eq("generation_id", generation_id)
            .limit(1),
        )
        if not result.data:
            return None
        return self._map_to_charge(result.data[0])

    def list_charges(
        self,
        status: Optional[GenerationStatus] = None,
        older_than: Optional[datetime] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[GenerationCharge]:
        query = self._db.table("generation_charges").select("*")
        if status is not None:
            query = query.eq("status", status.value)
        if older_than is not None:
            query = query.lt("created_at", older_than.isoformat())
        if user_id is not None:
            query = query.eq("user_id", user_id)
        result = self._execute(
            "list_charges",
            query.order("created_at").limit(limit),
        )
        return [self._map_to_charge(row) for row in result.data]

    def list_user_ids(self) -> list[str]:
        result = self._execute(
            "list_user_ids",
            self._db.table("credit_balances").select("user_id").order("user_id"),
        )
        return [row["user_id"] for row in result.data]

    def reconcile_balance(self, user_id: str) -> ReconciliationResult:
        data = self._rpc("ledger_reconcile_balance", {"p_user_id": user_id})
        result = ReconciliationResult(
            user_id=user_id,
            cached_balance=Decimal(str(data["cached_balance"])),
            computed_balance=Decimal(str(data["computed_balance"])),
            repaired=data["repaired"],
        )
        if result.repaired:
            logger.warning(
                f"Balance drift for user {user_id}: "
                f"cached {result.cached_balance}, log {result.computed_balance}"
            )
        return result

    # -- row mapping -------------------------------------------------------

    @staticmethod
    def _map_to_balance(row: dict[str, Any]) -> CreditBalance:
        return CreditBalance(
            user_id=row["user_id"],
            current_balance=Decimal(str(row["current_balance"])),
            is_active=row.get("is_active", True),
            updated_at=row.get("updated_at"),
        )

    @staticmethod
    def _map_to_transaction(row: dict[str, Any]) -> CreditTransaction:
        return CreditTransaction(
            id=str(row["id"]),
            user_id=row["user_id"],
            amount=Decimal(str(row["amount"])),
            transaction_type=TransactionType(row["transaction_type"]),
            description=row.get("description") or "",
            model_name=row.get("model_name"),
            generation_id=row.get("generation_id"),
            reference_id=row.get("reference_id"),
            balance_after=Decimal(str(row["balance_after"])),
            created_at=row["created_at"],
        )

    def _map_optional_transaction(
        self, row: Optional[dict[str, Any]]
    ) -> Optional[CreditTransaction]:
        return self._map_to_transaction(row) if row else None

    @staticmethod
    def _map_to_charge(row: dict[str, Any]) -> GenerationCharge:
        return GenerationCharge(
            generation_id=row["generation_id"],
            user_id=row["user_id"],
            model_name=row["model_name"],
            generation_type=GenerationType(row["generation_type"]),
            amount=Decimal(str(row["amount"])),
            status=GenerationStatus(row["status"]),
            balance_after=Decimal(str(row.get("balance_after") or 0)),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
