"""Tests for the Supabase credit ledger's mapping of function results."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from modules.billing import (
    AlreadyRefundedError,
    ChargeNotFoundError,
    DuplicateTransactionError,
    GenerationIdConflictError,
    GenerationStatus,
    GenerationType,
    InsufficientCreditsError,
    SupabaseCreditLedger,
    TransactionType,
)

NOW = "2025-01-01T00:00:00+00:00"

TRANSACTION_ROW = {
    "id": "tx-1",
    "user_id": "user-1",
    "amount": -0.0398,
    "transaction_type": "credit_used",
    "description": "Generation with nano-banana",
    "model_name": "nano-banana",
    "generation_id": "gen-1",
    "reference_id": None,
    "balance_after": 0.0602,
    "created_at": NOW,
}

CHARGE_ROW = {
    "generation_id": "gen-1",
    "user_id": "user-1",
    "model_name": "nano-banana",
    "generation_type": "image",
    "amount": 0.0398,
    "status": "charged",
    "balance_after": 0.0602,
    "created_at": NOW,
    "updated_at": NOW,
}


def _ledger_returning(data) -> tuple[SupabaseCreditLedger, MagicMock]:
    db = MagicMock()
    db.rpc.return_value.execute.return_value.data = data
    return SupabaseCreditLedger(db), db


class TestAppend:
    def test_ok(self):
        ledger, db = _ledger_returning({"status": "ok", "transaction": TRANSACTION_ROW})

        tx = ledger.append("user-1", Decimal("-0.0398"), TransactionType.CREDIT_USED, "Use")

        assert tx.amount == Decimal("-0.0398")
        assert tx.balance_after == Decimal("0.0602")
        name, params = db.rpc.call_args.args
        assert name == "ledger_append"
        assert params["p_amount"] == "-0.0398"
        assert params["p_transaction_type"] == "credit_used"

    def test_duplicate(self):
        ledger, _ = _ledger_returning({"status": "duplicate"})
        with pytest.raises(DuplicateTransactionError):
            ledger.append("user-1", Decimal("5"), TransactionType.CREDIT_ADDED, "x", reference_id="cs_1")

    def test_insufficient(self):
        ledger, _ = _ledger_returning({"status": "insufficient_credits", "available": 0.02})
        with pytest.raises(InsufficientCreditsError) as exc_info:
            ledger.append("user-1", Decimal("-1"), TransactionType.CREDIT_USED, "x")
        assert exc_info.value.available == Decimal("0.02")


class TestChargeGeneration:
    def test_charged(self):
        ledger, db = _ledger_returning({
            "status": "charged",
            "charge": CHARGE_ROW,
            "transaction": TRANSACTION_ROW,
            "balance_after": 0.0602,
        })

        outcome = ledger.charge_generation(
            "user-1", "gen-1", "nano-banana", GenerationType.IMAGE, Decimal("0.0398")
        )

        assert outcome.already_charged is False
        assert outcome.balance_after == Decimal("0.0602")
        assert outcome.charge.status == GenerationStatus.CHARGED
        assert db.rpc.call_args.args[0] == "ledger_charge_generation"

    def test_already_charged(self):
        ledger, _ = _ledger_returning({
            "status": "already_charged",
            "charge": CHARGE_ROW,
            "balance_after": 0.0602,
        })

        outcome = ledger.charge_generation(
            "user-1", "gen-1", "nano-banana", GenerationType.IMAGE, Decimal("0.0398")
        )

        assert outcome.already_charged is True
        assert outcome.transaction is None
        assert outcome.charge.balance_after == Decimal("0.0602")

    def test_refunded(self):
        ledger, _ = _ledger_returning({"status": "refunded"})
        with pytest.raises(AlreadyRefundedError):
            ledger.charge_generation("user-1", "gen-1", "m", GenerationType.IMAGE, Decimal("0.0398"))

    def test_conflict(self):
        ledger, _ = _ledger_returning({"status": "conflict"})
        with pytest.raises(GenerationIdConflictError):
            ledger.charge_generation("user-2", "gen-1", "m", GenerationType.IMAGE, Decimal("1"))

    def test_insufficient(self):
        ledger, _ = _ledger_returning({"status": "insufficient_credits", "available": "0.02"})
        with pytest.raises(InsufficientCreditsError):
            ledger.charge_generation("user-1", "gen-1", "m", GenerationType.IMAGE, Decimal("0.0398"))


class TestRefundAndComplete:
    def test_refund_statuses(self):
        ledger, _ = _ledger_returning({"status": "not_found"})
        with pytest.raises(ChargeNotFoundError):
            ledger.refund_generation("gen-1", "x")

        ledger, _ = _ledger_returning({"status": "already_refunded"})
        with pytest.raises(AlreadyRefundedError):
            ledger.refund_generation("gen-1", "x")

    def test_refunded(self):
        ledger, _ = _ledger_returning({
            "status": "refunded",
            "charge": {**CHARGE_ROW, "status": "refunded"},
            "transaction": {**TRANSACTION_ROW, "amount": 0.0398, "transaction_type": "refund", "balance_after": 0.10},
            "balance_after": 0.10,
        })

        outcome = ledger.refund_generation("gen-1", "Provider failure")

        assert outcome.charge.status == GenerationStatus.REFUNDED
        assert outcome.balance_after == Decimal("0.1")

    def test_complete_refunded_raises(self):
        ledger, _ = _ledger_returning({"status": "refunded"})
        with pytest.raises(AlreadyRefundedError):
            ledger.complete_generation("gen-1")

    def test_reconcile(self):
        ledger, _ = _ledger_returning({"cached_balance": 9, "computed_balance": 1, "repaired": True})
        result = ledger.reconcile_balance("user-1")
        assert result.repaired is True
        assert result.computed_balance == Decimal("1")
