"""
Credit service.

Checks, charges and refunds generations on top of an ICreditLedger,
pricing them through the model cost registry. When an access gate is
wired in, it also enforces model access and the admin override.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from modules.model_costs import IModelCostRegistry, ModelNotFoundError

from .exceptions import AlreadyRefundedError, InsufficientCreditsError, InvalidAmountError
from .interfaces import ICreditLedger
from .models import (
    CreditBalance,
    CreditCheckResult,
    CreditTransaction,
    CreditUsageResult,
    GenerationCharge,
    GenerationStatus,
    GenerationType,
    ReconciliationResult,
    RefundResult,
    TransactionType,
)

if TYPE_CHECKING:
    from modules.access import IAccessGate

logger = logging.getLogger(__name__)


DEFAULT_MAX_CREDIT_GRANT = Decimal("1000")


def insufficient_credits_message(cost: Decimal, available: Decimal) -> str:
    """User-facing message for a generation the user cannot afford."""
    return (
        f"Insufficient credits: this generation costs ${cost} and you have "
        f"${available}. Please upgrade your plan or top up your credits."
    )


class CreditService:
    """
    Credit operations for generations.

    All balance changes go through the ledger in a single atomic call,
    so the check in use_credits is re-done inside the ledger and two
    concurrent charges can never both spend the same credits.
    """

    def __init__(
        self,
        ledger: ICreditLedger,
        registry: IModelCostRegistry,
        access: Optional["IAccessGate"] = None,
        max_credit_grant: Decimal = DEFAULT_MAX_CREDIT_GRANT,
        admin_free_generations: bool = True,
    ):
        """
        Initialize the credit service.

        Args:
            ledger: Credit ledger holding balances and the transaction log
            registry: Model cost registry used to price generations
            access: Access gate for model access and admin checks.
                    If None, every user is treated as a non-admin with
                    access to every active model.
            max_credit_grant: Largest amount a single add_credits call may grant
            admin_free_generations: Whether admins generate without being charged
        """
        self._ledger = ledger
        self._registry = registry
        self._access = access
        self._max_credit_grant = max_credit_grant
        self._admin_free = admin_free_generations

    async def _is_free_for(self, user_id: str) -> bool:
        if self._access is None or not self._admin_free:
            return False
        return await self._access.is_admin(user_id)

    async def check_credits(self, user_id: str, model_name: str) -> CreditCheckResult:
        try:
            model = self._registry.get_cost(model_name)
        except ModelNotFoundError as e:
            return CreditCheckResult(has_credits=False, error=e.message)

        cost = model.cost_per_generation
        balance = self._ledger.get_balance(user_id)
        available = balance.current_balance if balance else Decimal("0")

        if await self._is_free_for(user_id):
            return CreditCheckResult(
                has_credits=True,
                available_credits=available,
                model_cost=Decimal("0"),
            )

        if balance is None:
            return CreditCheckResult(
                has_credits=False,
                model_cost=cost,
                error="No credit balance found for user",
            )
        if not balance.is_active:
            return CreditCheckResult(
                has_credits=False,
                available_credits=available,
                model_cost=cost,
                error="Credit balance is inactive",
            )

        has_credits = available >= cost
        return CreditCheckResult(
            has_credits=has_credits,
            available_credits=available,
            model_cost=cost,
            error=None if has_credits else insufficient_credits_message(cost, available),
        )

    async def use_credits(
        self,
        user_id: str,
        model_name: str,
        generation_type: GenerationType,
        generation_id: Optional[str] = None,
    ) -> CreditUsageResult:
        generation_id = generation_id or str(uuid.uuid4())

        try:
            model = self._registry.get_cost(model_name)
        except ModelNotFoundError as e:
            return CreditUsageResult(
                success=False,
                generation_id=generation_id,
                error=e.message,
            )

        if self._access is not None:
            await self._access.require_model_access(user_id, model_name)

        cost = model.cost_per_generation
        if await self._is_free_for(user_id):
            logger.info(f"Admin {user_id} generating with {model_name} free of charge")
            cost = Decimal("0")
        else:
            balance = self._ledger.get_balance(user_id)
            if balance is not None and not balance.is_active:
                return CreditUsageResult(
                    success=False,
                    remaining_credits=balance.current_balance,
                    generation_id=generation_id,
                    error="Credit balance is inactive",
                )

        try:
            outcome = self._ledger.charge_generation(
                user_id=user_id,
                generation_id=generation_id,
                model_name=model_name,
                generation_type=generation_type,
                amount=cost,
            )
        except InsufficientCreditsError as e:
            logger.info(
                f"Insufficient credits for user {user_id} on {model_name}: "
                f"required {e.required}, available {e.available}"
            )
            return CreditUsageResult(
                success=False,
                remaining_credits=e.available,
                generation_id=generation_id,
                error=insufficient_credits_message(cost, e.available),
            )
        except AlreadyRefundedError as e:
            logger.info(f"Rejected reuse of refunded generation {generation_id} by user {user_id}")
            balance = self._ledger.get_balance(user_id)
            return CreditUsageResult(
                success=False,
                remaining_credits=balance.current_balance if balance else Decimal("0"),
                generation_id=generation_id,
                error=f"{e.message}; start a new generation",
            )

        if outcome.already_charged:
            logger.info(f"Generation {generation_id} already charged, returning prior charge")
        else:
            logger.info(
                f"Charged user {user_id} {outcome.charge.amount} for {model_name} "
                f"(generation {generation_id})"
            )

        return CreditUsageResult(
            success=True,
            credits_used=outcome.charge.amount,
            remaining_credits=outcome.balance_after,
            generation_id=generation_id,
        )

    async def add_credits(
        self,
        user_id: str,
        amount: Decimal,
        source: str,
        reference_id: Optional[str] = None,
    ) -> CreditTransaction:
        if amount <= 0:
            raise InvalidAmountError(amount, "Amount must be positive")
        if amount > self._max_credit_grant:
            raise InvalidAmountError(
                amount, f"Amount cannot exceed {self._max_credit_grant}"
            )

        transaction = self._ledger.append(
            user_id=user_id,
            amount=amount,
            transaction_type=TransactionType.CREDIT_ADDED,
            description=f"Credits added ({source})",
            reference_id=reference_id,
        )
        logger.info(f"Added {amount} credits to user {user_id} from {source}")
        return transaction

    async def refund(self, generation_id: str, reason: str = "Generation failed") -> RefundResult:
        """
        Refund a charged generation.

        A second refund is reported as an unsuccessful result rather than
        raised, so cancel and failure paths can both call this safely.

        Raises:
            ChargeNotFoundError: If the generation was never charged
        """
        try:
            outcome = self._ledger.refund_generation(generation_id, reason)
        except AlreadyRefundedError as e:
            return RefundResult(
                success=False,
                status=GenerationStatus.REFUNDED,
                error=e.message,
            )

        logger.info(
            f"Refunded {outcome.charge.amount} to user {outcome.charge.user_id} "
            f"for generation {generation_id}: {reason}"
        )
        return RefundResult(
            success=True,
            status=outcome.charge.status,
            refunded_amount=outcome.charge.amount,
            remaining_credits=outcome.balance_after,
        )

    async def complete(self, generation_id: str) -> GenerationCharge:
        return self._ledger.complete_generation(generation_id)

    async def get_charge(self, generation_id: str) -> Optional[GenerationCharge]:
        return self._ledger.get_charge(generation_id)

    async def get_balance(self, user_id: str) -> CreditBalance:
        balance = self._ledger.get_balance(user_id)
        if balance is None:
            return CreditBalance(user_id=user_id, current_balance=Decimal("0"))
        return balance

    async def get_history(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditTransaction]:
        return self._ledger.get_transactions(user_id, limit=limit, offset=offset)

    async def list_stale_charges(
        self,
        older_than: timedelta,
        limit: int = 100,
    ) -> list[GenerationCharge]:
        """List charges still in the charged state after older_than."""
        cutoff = datetime.now(timezone.utc) - older_than
        return self._ledger.list_charges(
            status=GenerationStatus.CHARGED,
            older_than=cutoff,
            limit=limit,
        )

    async def reconcile(self, user_id: str) -> ReconciliationResult:
        return self._ledger.reconcile_balance(user_id)
