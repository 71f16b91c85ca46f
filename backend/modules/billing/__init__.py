"""
Billing module.

Handles the credit ledger, credit checks and charges for generations,
and the Stripe webhook bridge.

Public API:
- ICreditLedger: Interface for the append-only credit ledger
- ICreditService: Interface for credit operations
- CreditService: Credit checks, charges, grants and refunds
- InMemoryCreditLedger / SupabaseCreditLedger: Ledger implementations
- StripeBillingBridge: Stripe webhook handling
- Billing exceptions: InsufficientCreditsError, etc.
"""

from .interfaces import ICreditLedger, ICreditService
from .models import (
    CreditBalance,
    CreditTransaction,
    TransactionType,
    GenerationType,
    GenerationStatus,
    GenerationCharge,
    SubscriptionTier,
    ChargeOutcome,
    RefundOutcome,
    ReconciliationResult,
    CreditCheckResult,
    CreditUsageResult,
    RefundResult,
)
from .exceptions import (
    BillingError,
    InsufficientCreditsError,
    InvalidAmountError,
    DuplicateTransactionError,
    GenerationIdConflictError,
    ChargeNotFoundError,
    AlreadyRefundedError,
    WebhookVerificationError,
)
from .ledger import InMemoryCreditLedger, SupabaseCreditLedger
from .service import CreditService
from .stripe_bridge import StripeBillingBridge, WebhookResult

__all__ = [
    # Interfaces
    "ICreditLedger",
    "ICreditService",
    # Models
    "CreditBalance",
    "CreditTransaction",
    "TransactionType",
    "GenerationType",
    "GenerationStatus",
    "GenerationCharge",
    "SubscriptionTier",
    "ChargeOutcome",
    "RefundOutcome",
    "ReconciliationResult",
    "CreditCheckResult",
    "CreditUsageResult",
    "RefundResult",
    # Exceptions
    "BillingError",
    "InsufficientCreditsError",
    "InvalidAmountError",
    "DuplicateTransactionError",
    "GenerationIdConflictError",
    "ChargeNotFoundError",
    "AlreadyRefundedError",
    "WebhookVerificationError",
    # Implementations
    "InMemoryCreditLedger",
    "SupabaseCreditLedger",
    "CreditService",
    "StripeBillingBridge",
    "WebhookResult",
]
