"""
Stripe billing bridge.

Translates verified Stripe webhook events into ledger top-ups and
subscription tier changes. Every credit grant is keyed by the Stripe
object id (checkout session or invoice), so a redelivered event is
acknowledged without crediting twice.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Optional

import stripe
from pydantic import BaseModel

from .exceptions import DuplicateTransactionError, WebhookVerificationError
from .interfaces import ICreditLedger
from .models import SubscriptionTier, TransactionType

if TYPE_CHECKING:
    from modules.access import IAccessGate

logger = logging.getLogger(__name__)


class WebhookResult(BaseModel):
    """Outcome of handling one webhook event."""

    event_id: str
    event_type: str
    handled: bool
    message: str


def _retrieve_subscription_metadata(subscription_id: str) -> dict[str, Any]:
    subscription = stripe.Subscription.retrieve(subscription_id)
    return dict(subscription["metadata"] or {})


class StripeBillingBridge:
    """
    Handles Stripe webhooks for credit purchases and subscriptions.

    Handled events:
    - checkout.session.completed: one-off credit purchase (metadata userId, credits)
    - invoice.payment_succeeded: monthly allowance for the subscription tier
    - customer.subscription.created / updated / deleted: tier and status changes
    - invoice.payment_failed: subscription marked past_due
    """

    def __init__(
        self,
        ledger: ICreditLedger,
        access: "IAccessGate",
        webhook_secret: str,
        monthly_allowances: dict[SubscriptionTier, Decimal],
        price_tiers: Optional[dict[str, SubscriptionTier]] = None,
        api_key: Optional[str] = None,
        subscription_metadata_lookup: Optional[Callable[[str], dict[str, Any]]] = None,
    ):
        """
        Initialize the bridge.

        Args:
            ledger: Credit ledger that receives top-ups
            access: Access gate that receives tier changes
            webhook_secret: Stripe endpoint signing secret (whsec_...)
            monthly_allowances: Credits granted per paid invoice, by tier
            price_tiers: Stripe price id to tier, used when metadata has no tier
            api_key: Stripe secret key, needed only for subscription lookups
            subscription_metadata_lookup: Fetches a subscription's metadata
                by id. Defaults to stripe.Subscription.retrieve.
        """
        self._ledger = ledger
        self._access = access
        self._webhook_secret = webhook_secret
        self._allowances = monthly_allowances
        self._price_tiers = price_tiers or {}
        self._lookup = subscription_metadata_lookup or _retrieve_subscription_metadata
        if api_key:
            stripe.api_key = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self._webhook_secret)

    def verify(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify the webhook signature and return the event as a dict.

        Raises:
            WebhookVerificationError: If the secret is missing, the
                signature is wrong or stale, or the payload is not JSON
        """
        if not self._webhook_secret:
            raise WebhookVerificationError("Webhook secret not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(str(e))
        except ValueError as e:
            raise WebhookVerificationError(f"Invalid payload: {e}")
        return json.loads(payload)

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookResult:
        event = self.verify(payload, signature)
        event_type = event.get("type", "")
        event_id = event.get("id", "")
        obj = event.get("data", {}).get("object", {})

        logger.info(f"Stripe webhook received: {event_type} ({event_id})")

        handlers = {
            "checkout.session.completed": self._handle_checkout_completed,
            "invoice.payment_succeeded": self._handle_payment_succeeded,
            "invoice.payment_failed": self._handle_payment_failed,
            "customer.subscription.created": self._handle_subscription_created,
            "customer.subscription.updated": self._handle_subscription_updated,
            "customer.subscription.deleted": self._handle_subscription_deleted,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
            return WebhookResult(
                event_id=event_id,
                event_type=event_type,
                handled=False,
                message="Event type not handled",
            )

        handled, message = await handler(obj)
        return WebhookResult(
            event_id=event_id,
            event_type=event_type,
            handled=handled,
            message=message,
        )

    # -- helpers -----------------------------------------------------------

    def _credit(self, user_id: str, amount: Decimal, description: str, reference_id: str) -> tuple[bool, str]:
        try:
            transaction = self._ledger.append(
                user_id=user_id,
                amount=amount,
                transaction_type=TransactionType.CREDIT_ADDED,
                description=description,
                reference_id=reference_id,
            )
        except DuplicateTransactionError:
            logger.info(f"Stripe object {reference_id} already credited, skipping")
            return True, "Already processed"

        logger.info(
            f"Credited {amount} to user {user_id} for {reference_id}, "
            f"balance now {transaction.balance_after}"
        )
        return True, f"Credited {amount}"

    def _tier_from(self, metadata: dict[str, Any], subscription: Optional[dict[str, Any]] = None) -> Optional[SubscriptionTier]:
        raw = metadata.get("tier")
        if raw:
            try:
                return SubscriptionTier(raw)
            except ValueError:
                logger.warning(f"Unknown tier in subscription metadata: {raw}")
                return None
        if subscription:
            for item in subscription.get("items", {}).get("data", []):
                price_id = (item.get("price") or {}).get("id")
                if price_id in self._price_tiers:
                    return self._price_tiers[price_id]
        return None

    def _invoice_metadata(self, invoice: dict[str, Any]) -> dict[str, Any]:
        details = invoice.get("subscription_details") or {}
        if not details:
            details = (invoice.get("parent") or {}).get("subscription_details") or {}
        metadata = details.get("metadata") or {}
        if metadata.get("userId"):
            return metadata

        subscription_id = invoice.get("subscription") or details.get("subscription")
        if not subscription_id:
            return {}
        return self._lookup(subscription_id)

    # -- event handlers ----------------------------------------------------

    async def _handle_checkout_completed(self, session: dict[str, Any]) -> tuple[bool, str]:
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        credits = metadata.get("credits")

        if not user_id or not credits:
            logger.info(f"Checkout session {session.get('id')} has no credit purchase metadata")
            return False, "Not a credit purchase"

        try:
            amount = Decimal(str(credits))
        except InvalidOperation:
            logger.error(f"Invalid credits metadata on session {session.get('id')}: {credits}")
            return False, "Invalid credits metadata"
        if amount <= 0:
            logger.error(f"Non-positive credits metadata on session {session.get('id')}: {credits}")
            return False, "Invalid credits metadata"

        return self._credit(
            user_id,
            amount,
            f"Credit purchase ({amount} credits)",
            reference_id=session["id"],
        )

    async def _handle_payment_succeeded(self, invoice: dict[str, Any]) -> tuple[bool, str]:
        metadata = self._invoice_metadata(invoice)
        user_id = metadata.get("userId")
        tier = self._tier_from(metadata)

        if not user_id or tier is None:
            logger.info(f"Invoice {invoice.get('id')} is not for a known subscription")
            return False, "Not a subscription invoice"

        allowance = self._allowances.get(tier)
        if not allowance:
            return False, f"No monthly allowance for tier {tier.value}"

        return self._credit(
            user_id,
            allowance,
            f"Monthly {tier.value} subscription credits",
            reference_id=invoice["id"],
        )

    async def _handle_payment_failed(self, invoice: dict[str, Any]) -> tuple[bool, str]:
        metadata = self._invoice_metadata(invoice)
        user_id = metadata.get("userId")
        if not user_id:
            logger.info(f"Invoice {invoice.get('id')} has no subscription user")
            return False, "Not a subscription invoice"

        await self._access.set_tier(user_id, subscription_status="past_due")
        logger.info(f"Payment failed for user {user_id}, status set to past_due")
        return True, "Subscription marked past_due"

    async def _handle_subscription_created(self, subscription: dict[str, Any]) -> tuple[bool, str]:
        metadata = subscription.get("metadata") or {}
        user_id = metadata.get("userId")
        tier = self._tier_from(metadata, subscription)

        if not user_id or tier is None:
            logger.error(f"Missing metadata in subscription: {subscription.get('id')}")
            return False, "Missing subscription metadata"

        await self._access.set_tier(user_id, tier=tier, subscription_status="active")
        logger.info(f"Subscription created for user {user_id}, tier: {tier.value}")
        return True, f"Tier set to {tier.value}"

    async def _handle_subscription_updated(self, subscription: dict[str, Any]) -> tuple[bool, str]:
        metadata = subscription.get("metadata") or {}
        user_id = metadata.get("userId")
        if not user_id:
            logger.error(f"Missing metadata in subscription: {subscription.get('id')}")
            return False, "Missing subscription metadata"

        status = subscription.get("status", "active")
        tier = self._tier_from(metadata, subscription)
        await self._access.set_tier(user_id, tier=tier, subscription_status=status)
        logger.info(f"Subscription updated for user {user_id}, status: {status}")
        return True, f"Status set to {status}"

    async def _handle_subscription_deleted(self, subscription: dict[str, Any]) -> tuple[bool, str]:
        metadata = subscription.get("metadata") or {}
        user_id = metadata.get("userId")
        if not user_id:
            logger.error(f"Missing userId in subscription metadata: {subscription.get('id')}")
            return False, "Missing subscription metadata"

        await self._access.set_tier(
            user_id,
            tier=SubscriptionTier.FREE,
            subscription_status="cancelled",
        )
        logger.info(f"Subscription deleted for user {user_id}, downgraded to free tier")
        return True, "Downgraded to free"
