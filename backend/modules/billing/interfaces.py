"""
Billing module interfaces.

Other modules should depend on ICreditService, not the concrete
implementation. Only the credit service and the Stripe bridge talk
to ICreditLedger directly.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from .models import (
    ChargeOutcome,
    CreditBalance,
    CreditCheckResult,
    CreditTransaction,
    CreditUsageResult,
    GenerationCharge,
    GenerationStatus,
    GenerationType,
    ReconciliationResult,
    RefundOutcome,
    RefundResult,
    TransactionType,
)


@runtime_checkable
class ICreditLedger(Protocol):
    """
    Interface for the append-only credit ledger.

    Each mutating method is a single atomic unit: the log entry and the
    cached balance change together or not at all. Implementations must
    keep current_balance equal to the sum of the user's log amounts and
    never let it go below zero.
    """

    def get_balance(self, user_id: str) -> Optional[CreditBalance]:
        """
        Get a user's cached balance.

        Returns:
            CreditBalance, or None if the user has never been credited
        """
        ...

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
        """
        Append a log entry and apply it to the cached balance.

        Args:
            user_id: Supabase user ID
            amount: Signed, non-zero amount
            transaction_type: Type of entry
            description: Human-readable reason
            reference_id: External idempotency key, unique when present
            model_name: Model the entry relates to
            generation_id: Generation the entry relates to

        Returns:
            The appended transaction

        Raises:
            InvalidAmountError: If amount is zero
            InsufficientCreditsError: If a negative amount would overdraw
            DuplicateTransactionError: If reference_id was already applied
        """
        ...

    def charge_generation(
        self,
        user_id: str,
        generation_id: str,
        model_name: str,
        generation_type: GenerationType,
        amount: Decimal,
    ) -> ChargeOutcome:
        """
        Re-check the balance and deduct the cost of one generation.

        A generation id that is already charged returns the prior charge
        and the balance recorded with it, with already_charged=True, and
        deducts nothing.

        Raises:
            InsufficientCreditsError: If the balance does not cover amount
            GenerationIdConflictError: If the id belongs to another user
            AlreadyRefundedError: If the id was charged and then refunded
        """
        ...

    def refund_generation(self, generation_id: str, reason: str) -> RefundOutcome:
        """
        Reverse a generation charge with a refund entry.

        Raises:
            ChargeNotFoundError: If the generation was never charged
            AlreadyRefundedError: If it was already refunded
        """
        ...

    def complete_generation(self, generation_id: str) -> GenerationCharge:
        """
        Mark a charged generation as completed. Completing twice is a no-op.

        Raises:
            ChargeNotFoundError: If the generation was never charged
            AlreadyRefundedError: If it was refunded
        """
        ...

    def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditTransaction]:
        """Get a user's log entries, most recent first."""
        ...

    def get_charge(self, generation_id: str) -> Optional[GenerationCharge]:
        """Get the charge for a generation, if any."""
        ...

    def list_charges(
        self,
        status: Optional[GenerationStatus] = None,
        older_than: Optional[datetime] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[GenerationCharge]:
        """List charges, oldest first, filtered by status, age and owner."""
        ...

    def list_user_ids(self) -> list[str]:
        """List users that have a balance row."""
        ...

    def reconcile_balance(self, user_id: str) -> ReconciliationResult:
        """
        Recompute a user's balance from the log and repair the cache.

        Returns:
            ReconciliationResult with repaired=True if the cache was wrong
        """
        ...


@runtime_checkable
class ICreditService(Protocol):
    """
    Interface for credit operations.

    This is the contract the generation gateway and the API use to
    check, charge and refund generations.
    """

    async def check_credits(self, user_id: str, model_name: str) -> CreditCheckResult:
        """
        Check if a user can afford one generation of a model.

        Pure read: nothing is reserved.
        """
        ...

    async def use_credits(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        generation_id: Optional[str] = None,
    ) -> CreditUsageResult:
        """
        Charge one generation.

        Idempotent on generation_id. Insufficient credits is reported in
        the result, not raised.

        Raises:
            ModelAccessDeniedError: If the user may not use the model
        """
        ...

    async def add_credits(
        self,
        user_id: str,
        amount: Decimal,
        source: str,
        reference_id: Optional[str] = None,
    ) -> CreditTransaction:
        """
        Grant credits to a user.

        Raises:
            InvalidAmountError: If amount is not in (0, max_credit_grant]
            DuplicateTransactionError: If reference_id was already applied
        """
        ...

    async def refund(self, generation_id: str, reason: str = "Generation failed") -> RefundResult:
        """Refund a charged generation."""
        ...

    async def complete(self, generation_id: str) -> GenerationCharge:
        """Mark a charged generation as completed."""
        ...

    async def get_balance(self, user_id: str) -> CreditBalance:
        """Get a user's balance; zero if the user was never credited."""
        ...

    async def get_history(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditTransaction]:
        """Get a user's credit history, most recent first."""
        ...
