"""Tests for the Stripe webhook bridge."""

import hashlib
import hmac
import json
import time
from typing import Optional
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from modules.billing import (
    InMemoryCreditLedger,
    StripeBillingBridge,
    SubscriptionTier,
    TransactionType,
    WebhookVerificationError,
)


WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event(event_type: str, obj: dict, event_id: str = "evt_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode()


@pytest.fixture
def bridge(ledger, access) -> StripeBillingBridge:
    return StripeBillingBridge(
        ledger=ledger,
        access=access,
        webhook_secret=WEBHOOK_SECRET,
        monthly_allowances={
            SubscriptionTier.LIGHT: Decimal("14.99"),
            SubscriptionTier.HEAVY: Decimal("19.99"),
        },
        price_tiers={"price_heavy": SubscriptionTier.HEAVY},
        subscription_metadata_lookup=MagicMock(return_value={}),
    )


class TestVerify:
    def test_valid_signature(self, bridge):
        payload = event("ping", {})
        parsed = bridge.verify(payload, sign(payload))
        assert parsed["type"] == "ping"

    def test_wrong_secret_rejected(self, bridge):
        payload = event("ping", {})
        with pytest.raises(WebhookVerificationError):
            bridge.verify(payload, sign(payload, secret="whsec_other"))

    def test_tampered_payload_rejected(self, bridge):
        payload = event("checkout.session.completed", {"metadata": {"credits": "1"}})
        signature = sign(payload)
        tampered = payload.replace(b'"1"', b'"1000"')
        with pytest.raises(WebhookVerificationError):
            bridge.verify(tampered, signature)

    def test_stale_timestamp_rejected(self, bridge):
        payload = event("ping", {})
        with pytest.raises(WebhookVerificationError):
            bridge.verify(payload, sign(payload, timestamp=int(time.time()) - 3600))

    def test_missing_secret_rejected(self, ledger, access):
        bridge = StripeBillingBridge(
            ledger=ledger, access=access, webhook_secret="", monthly_allowances={}
        )
        payload = event("ping", {})
        assert bridge.is_configured is False
        with pytest.raises(WebhookVerificationError):
            bridge.verify(payload, sign(payload))


class TestCheckoutCompleted:
    @pytest.mark.asyncio
    async def test_credits_purchase(self, bridge, ledger: InMemoryCreditLedger):
        payload = event(
            "checkout.session.completed",
            {"id": "cs_123", "metadata": {"userId": "user-1", "credits": "10.00"}},
        )

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        assert ledger.get_balance("user-1").current_balance == Decimal("10.00")
        tx = ledger.get_transactions("user-1")[0]
        assert tx.reference_id == "cs_123"
        assert tx.transaction_type == TransactionType.CREDIT_ADDED

    @pytest.mark.asyncio
    async def test_redelivery_credits_once(self, bridge, ledger):
        payload = event(
            "checkout.session.completed",
            {"id": "cs_123", "metadata": {"userId": "user-1", "credits": "10.00"}},
        )

        await bridge.handle_webhook(payload, sign(payload))
        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        assert result.message == "Already processed"
        assert ledger.get_balance("user-1").current_balance == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_session_without_metadata_ignored(self, bridge, ledger):
        payload = event("checkout.session.completed", {"id": "cs_123", "metadata": {}})

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is False
        assert ledger.list_user_ids() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credits", ["abc", "-5", "0"])
    async def test_invalid_credits_metadata_ignored(self, bridge, ledger, credits):
        payload = event(
            "checkout.session.completed",
            {"id": "cs_123", "metadata": {"userId": "user-1", "credits": credits}},
        )

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is False
        assert ledger.get_balance("user-1") is None


class TestInvoiceEvents:
    @pytest.mark.asyncio
    async def test_payment_succeeded_grants_allowance(self, bridge, ledger):
        payload = event(
            "invoice.payment_succeeded",
            {
                "id": "in_1",
                "subscription_details": {"metadata": {"userId": "user-1", "tier": "light"}},
            },
        )

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        assert ledger.get_balance("user-1").current_balance == Decimal("14.99")
        assert ledger.get_transactions("user-1")[0].reference_id == "in_1"

    @pytest.mark.asyncio
    async def test_payment_succeeded_reads_parent_details(self, bridge, ledger):
        payload = event(
            "invoice.payment_succeeded",
            {
                "id": "in_2",
                "parent": {
                    "subscription_details": {
                        "metadata": {"userId": "user-1", "tier": "heavy"},
                    },
                },
            },
        )

        await bridge.handle_webhook(payload, sign(payload))

        assert ledger.get_balance("user-1").current_balance == Decimal("19.99")

    @pytest.mark.asyncio
    async def test_payment_succeeded_looks_up_subscription(self, ledger, access):
        lookup = MagicMock(return_value={"userId": "user-1", "tier": "heavy"})
        bridge = StripeBillingBridge(
            ledger=ledger,
            access=access,
            webhook_secret=WEBHOOK_SECRET,
            monthly_allowances={SubscriptionTier.HEAVY: Decimal("19.99")},
            subscription_metadata_lookup=lookup,
        )
        payload = event("invoice.payment_succeeded", {"id": "in_3", "subscription": "sub_1"})

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        lookup.assert_called_once_with("sub_1")
        assert ledger.get_balance("user-1").current_balance == Decimal("19.99")

    @pytest.mark.asyncio
    async def test_one_off_invoice_ignored(self, bridge, ledger):
        payload = event("invoice.payment_succeeded", {"id": "in_4"})

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is False
        assert ledger.list_user_ids() == []

    @pytest.mark.asyncio
    async def test_payment_failed_marks_past_due(self, bridge, access_store):
        payload = event(
            "invoice.payment_failed",
            {"id": "in_5", "subscription_details": {"metadata": {"userId": "user-1"}}},
        )

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        assert access_store.get_user("user-1").subscription_status == "past_due"


class TestSubscriptionEvents:
    @pytest.mark.asyncio
    async def test_created_sets_tier(self, bridge, access_store):
        payload = event(
            "customer.subscription.created",
            {"id": "sub_1", "metadata": {"userId": "user-1", "tier": "light"}},
        )

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is True
        user = access_store.get_user("user-1")
        assert user.tier == SubscriptionTier.LIGHT
        assert user.subscription_status == "active"

    @pytest.mark.asyncio
    async def test_created_tier_from_price(self, bridge, access_store):
        payload = event(
            "customer.subscription.created",
            {
                "id": "sub_1",
                "metadata": {"userId": "user-1"},
                "items": {"data": [{"price": {"id": "price_heavy"}}]},
            },
        )

        await bridge.handle_webhook(payload, sign(payload))

        assert access_store.get_user("user-1").tier == SubscriptionTier.HEAVY

    @pytest.mark.asyncio
    async def test_created_without_user_not_handled(self, bridge):
        payload = event("customer.subscription.created", {"id": "sub_1", "metadata": {}})
        result = await bridge.handle_webhook(payload, sign(payload))
        assert result.handled is False

    @pytest.mark.asyncio
    async def test_updated_sets_status(self, bridge, access_store):
        payload = event(
            "customer.subscription.updated",
            {"id": "sub_1", "status": "past_due", "metadata": {"userId": "user-1", "tier": "heavy"}},
        )

        await bridge.handle_webhook(payload, sign(payload))

        user = access_store.get_user("user-1")
        assert user.subscription_status == "past_due"
        assert user.tier == SubscriptionTier.HEAVY

    @pytest.mark.asyncio
    async def test_past_due_then_active_toggles_paid_access(self, bridge, access):
        past_due = event(
            "customer.subscription.updated",
            {"id": "sub_1", "status": "past_due", "metadata": {"userId": "user-1", "tier": "heavy"}},
        )
        await bridge.handle_webhook(past_due, sign(past_due))
        assert await access.can_access_model("user-1", "seedance-pro") is False

        recovered = event(
            "customer.subscription.updated",
            {"id": "sub_1", "status": "active", "metadata": {"userId": "user-1", "tier": "heavy"}},
            event_id="evt_2",
        )
        await bridge.handle_webhook(recovered, sign(recovered))
        assert await access.can_access_model("user-1", "seedance-pro") is True

    @pytest.mark.asyncio
    async def test_deleted_downgrades_to_free(self, bridge, access_store):
        created = event(
            "customer.subscription.created",
            {"id": "sub_1", "metadata": {"userId": "user-1", "tier": "heavy"}},
        )
        deleted = event(
            "customer.subscription.deleted",
            {"id": "sub_1", "metadata": {"userId": "user-1"}},
            event_id="evt_2",
        )

        await bridge.handle_webhook(created, sign(created))
        await bridge.handle_webhook(deleted, sign(deleted))

        user = access_store.get_user("user-1")
        assert user.tier == SubscriptionTier.FREE
        assert user.subscription_status == "cancelled"


class TestUnhandledEvents:
    @pytest.mark.asyncio
    async def test_unknown_type_acknowledged(self, bridge):
        payload = event("customer.created", {"id": "cus_1"})

        result = await bridge.handle_webhook(payload, sign(payload))

        assert result.handled is False
        assert result.event_type == "customer.created"
        assert result.event_id == "evt_1"
