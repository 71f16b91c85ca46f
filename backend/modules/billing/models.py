"""
Billing module data models.

These models define the data structures used by the credit ledger and
credit service, and the request/response bodies of the credit endpoints.

Credits are denominated in USD (e.g., 0.0398 = one standard image).
Amounts are Decimal internally and floats on the wire.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from shared.models import CamelModel


class TransactionType(str, Enum):
    """Types of credit transactions."""

    CREDIT_ADDED = "credit_added"  # Purchase, subscription top-up or admin grant
    CREDIT_USED = "credit_used"    # Charged for a generation
    REFUND = "refund"              # Reversal of a generation charge


class GenerationType(str, Enum):
    """Kinds of generation a charge can be for."""

    IMAGE = "image"
    VIDEO = "video"
    CHARACTER_VARIATION = "character_variation"


class GenerationStatus(str, Enum):
    """Lifecycle of a charged generation."""

    CHARGED = "charged"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class SubscriptionTier(str, Enum):
    """User subscription tiers."""

    FREE = "free"
    LIGHT = "light"
    HEAVY = "heavy"


class CreditBalance(BaseModel):
    """A user's cached credit balance."""

    user_id: str = Field(..., description="User ID")
    current_balance: Decimal = Field(..., ge=0, description="Current credit balance in USD")
    is_active: bool = Field(default=True, description="Whether the balance can be used")
    updated_at: Optional[datetime] = Field(None, description="Last balance change")


class CreditTransaction(BaseModel):
    """
    An entry in the append-only credit log.

    Tracks every change to a user's credit balance.
    """

    id: str = Field(..., description="Transaction ID (UUID)")
    user_id: str = Field(..., description="User ID")
    amount: Decimal = Field(
        ...,
        description="Transaction amount (positive for add/refund, negative for use)",
    )
    transaction_type: TransactionType = Field(..., description="Transaction type")
    description: str = Field(..., description="Human-readable reason")
    model_name: Optional[str] = Field(None, description="Model charged, for usage and refunds")
    generation_id: Optional[str] = Field(None, description="Generation this entry belongs to")
    reference_id: Optional[str] = Field(
        None,
        description="External idempotency key (e.g., Stripe session or invoice id)",
    )
    balance_after: Decimal = Field(..., description="Balance after transaction")
    created_at: datetime = Field(..., description="Transaction timestamp")


class GenerationCharge(BaseModel):
    """One charged generation and its current status."""

    generation_id: str
    user_id: str
    model_name: str
    generation_type: GenerationType
    amount: Decimal = Field(..., ge=0, description="Credits deducted for this generation")
    status: GenerationStatus = GenerationStatus.CHARGED
    balance_after: Decimal = Field(Decimal("0"), description="Balance right after the charge")
    created_at: datetime
    updated_at: datetime


class ChargeOutcome(BaseModel):
    """Result of a ledger charge."""

    charge: GenerationCharge
    transaction: Optional[CreditTransaction] = None
    balance_after: Decimal
    already_charged: bool = False


class RefundOutcome(BaseModel):
    """Result of a ledger refund."""

    charge: GenerationCharge
    transaction: Optional[CreditTransaction] = None
    balance_after: Decimal


class ReconciliationResult(BaseModel):
    """Cached balance versus the sum of the log for one user."""

    user_id: str
    cached_balance: Decimal
    computed_balance: Decimal
    repaired: bool


# ---------------------------------------------------------------------------
# Credit service results
# ---------------------------------------------------------------------------


class CreditCheckResult(BaseModel):
    """Whether a user can afford one generation of a model."""

    has_credits: bool
    available_credits: Decimal = Decimal("0")
    model_cost: Decimal = Decimal("0")
    error: Optional[str] = None


class CreditUsageResult(BaseModel):
    """Outcome of charging a generation."""

    success: bool
    credits_used: Decimal = Decimal("0")
    remaining_credits: Decimal = Decimal("0")
    generation_id: Optional[str] = None
    error: Optional[str] = None


class RefundResult(BaseModel):
    """Outcome of refunding a generation."""

    success: bool
    status: GenerationStatus
    refunded_amount: Decimal = Decimal("0")
    remaining_credits: Decimal = Decimal("0")
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# API request/response bodies
# ---------------------------------------------------------------------------


class CheckCreditsRequest(CamelModel):
    """Request body for POST /credits/check."""

    user_id: str
    model_name: str


class CheckCreditsResponse(CamelModel):
    has_credits: bool
    available_credits: float
    model_cost: float
    error: Optional[str] = None


class UseCreditsRequest(CamelModel):
    """Request body for POST /credits/use."""

    user_id: str
    model_name: str
    generation_type: GenerationType
    generation_id: Optional[str] = None


class UseCreditsResponse(CamelModel):
    success: bool
    credits_used: float
    remaining_credits: float
    generation_id: Optional[str] = None
    error: Optional[str] = None


class AddCreditsRequest(CamelModel):
    """Request body for POST /credits/add."""

    user_id: str
    amount: Decimal
    source: str = "manual"


class AddCreditsResponse(CamelModel):
    success: bool
    message: str
    new_balance: Optional[float] = None


class RefundRequest(CamelModel):
    generation_id: str


class RefundResponse(CamelModel):
    success: bool
    status: GenerationStatus
    refunded_amount: Optional[float] = None
    error: Optional[str] = None


class BalanceResponse(CamelModel):
    """API response for balance queries."""

    balance: float
    is_active: bool


class TransactionResponse(CamelModel):
    id: str
    amount: float
    transaction_type: TransactionType
    description: str
    model_name: Optional[str] = None
    generation_id: Optional[str] = None
    balance_after: float
    created_at: datetime


class TransactionListResponse(CamelModel):
    """API response for transaction history."""

    transactions: list[TransactionResponse]
