"""
Billing module exceptions.

These exceptions are raised by the ledger, the credit service and the
Stripe bridge, and can be caught by API error handlers to return
appropriate HTTP responses.
"""

from decimal import Decimal
from typing import Optional

from shared.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    VaryError,
)


class BillingError(VaryError):
    """Base exception for billing-related errors."""

    pass


class InsufficientCreditsError(BillingError):
    """
    Raised when a user doesn't have enough credits for an operation.

    The UI should handle this gracefully by prompting the user to
    upgrade or top up.
    """

    status_code = 402

    def __init__(
        self,
        required: Decimal,
        available: Decimal,
        user_id: Optional[str] = None,
    ):
        message = f"Insufficient credits. Required: ${required}, available: ${available}"
        super().__init__(
            message,
            code="INSUFFICIENT_CREDITS",
            details={
                "required": str(required),
                "available": str(available),
                "shortfall": str(required - available),
            },
        )
        self.required = required
        self.available = available
        if user_id:
            self.details["user_id"] = user_id


class InvalidAmountError(ValidationError):
    """Raised when a credit amount is invalid."""

    def __init__(self, amount: Decimal, reason: str):
        super().__init__(
            f"Invalid amount: {amount}. {reason}",
            code="INVALID_AMOUNT",
            details={"amount": str(amount), "reason": reason},
        )


class DuplicateTransactionError(ConflictError):
    """Raised when an external reference id has already been applied."""

    def __init__(self, reference_id: str):
        super().__init__(
            f"Transaction already processed: {reference_id}",
            code="DUPLICATE_TRANSACTION",
            details={"reference_id": reference_id},
        )
        self.reference_id = reference_id


class GenerationIdConflictError(ConflictError):
    """Raised when a generation id is already charged to another user."""

    def __init__(self, generation_id: str):
        super().__init__(
            f"Generation id already in use: {generation_id}",
            code="GENERATION_ID_CONFLICT",
            details={"generation_id": generation_id},
        )


class ChargeNotFoundError(NotFoundError):
    """Raised when no charge exists for a generation id."""

    def __init__(self, generation_id: str):
        super().__init__(
            f"No charge found for generation: {generation_id}",
            code="CHARGE_NOT_FOUND",
            details={"generation_id": generation_id},
        )


class AlreadyRefundedError(ConflictError):
    """Raised when a generation has already been refunded."""

    def __init__(self, generation_id: str):
        super().__init__(
            f"Generation already refunded: {generation_id}",
            code="ALREADY_REFUNDED",
            details={"generation_id": generation_id},
        )


class WebhookVerificationError(ValidationError):
    """Raised when Stripe webhook signature verification fails."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            "Webhook signature verification failed",
            code="WEBHOOK_VERIFICATION_FAILED",
            details={"reason": reason} if reason else {},
        )
