"""
Stripe Payment Service

Checkout for the paid plan, and the webhook that keeps each profile's plan
status in sync with Stripe.

DESIGN DECISION: Only the webhook moves a profile to ACTIVE or EXPIRED.
The checkout redirect proves nothing; Stripe's signed event does.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
import structlog
from pydantic import ValidationError

from financepro.audit import AuditLogger
from financepro.config import get_settings
from financepro.config.settings import StripeSettings
from financepro.ledger import LedgerService
from financepro.models.finance import PlanStatus, Profile


logger = structlog.get_logger("payments")

ACTIVATING_EVENTS = (
    "invoice.payment_succeeded",
    "customer.subscription.created",
    "customer.subscription.updated",
)
CANCELLING_EVENT = "customer.subscription.deleted"
ACTIVE_STATUSES = ("active", "trialing")


class PaymentError(Exception):
    """Checkout could not be created."""
    pass


class WebhookVerificationError(PaymentError):
    """A webhook call is unsigned or its signature does not match."""
    pass


def _period_end(subscription: dict[str, Any]) -> Optional[datetime]:
    """End of the paid period, from the subscription or its first item."""
    timestamp = subscription.get("current_period_end")
    if timestamp is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            timestamp = items[0].get("current_period_end")
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


class PaymentService:
    """Stripe checkout and webhook handling."""

    def __init__(
        self,
        ledger: LedgerService,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[StripeSettings] = None,
        client: Optional[Any] = None,
    ):
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._settings = settings
        self._client = client

    @property
    def settings(self) -> StripeSettings:
        """
        Stripe settings, loaded on first use.

        Raises:
            PaymentError: If Stripe is not configured
        """
        if self._settings is None:
            try:
                self._settings = get_settings().stripe
            except ValidationError as e:
                logger.warning("stripe_not_configured", error=str(e))
                raise PaymentError("Stripe não configurado (STRIPE_SECRET_KEY)") from e
        return self._settings

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = stripe.StripeClient(self.settings.secret_key)
        return self._client

    # =========================================================================
    # Checkout
    # =========================================================================

    async def create_checkout(
        self,
        user_id: str,
        email: Optional[str],
        origin: str,
        price_id: Optional[str] = None,
    ) -> str:
        """
        Create a subscription checkout session with the free trial.

        The Stripe customer is created once and remembered on the profile.

        Returns:
            The checkout URL

        Raises:
            PaymentError: If no price or origin is known, or Stripe fails
        """
        price = price_id or self.settings.price_id
        if not price:
            raise PaymentError("Nenhum plano (price_id) configurado")
        if not origin:
            raise PaymentError("Origem da requisição ausente")
        origin = origin.rstrip("/")

        profile = await self._ledger.ensure_profile(user_id, email=email)

        try:
            customer_id = profile.stripe_customer_id
            if not customer_id:
                customer = self.client.customers.create(params={
                    "email": email or profile.email,
                    "metadata": {"user_id": user_id},
                })
                customer_id = customer.id
                await self._ledger.storage.update(
                    Profile, profile.id, {"stripe_customer_id": customer_id}
                )

            session = self.client.checkout.sessions.create(params={
                "customer": customer_id,
                "line_items": [{"price": price, "quantity": 1}],
                "mode": "subscription",
                "subscription_data": {"trial_period_days": self.settings.trial_period_days},
                "success_url": f"{origin}{self.settings.success_path}",
                "cancel_url": f"{origin}{self.settings.cancel_path}",
            })
        except stripe.StripeError as e:
            logger.error("checkout_failed", user_id=user_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="stripe", error_message=str(e)
                )
            raise PaymentError(f"Falha ao criar checkout: {e}") from e

        logger.info("checkout_created", user_id=user_id, customer_id=customer_id)
        if self._audit_logger:
            await self._audit_logger.log_checkout_created(
                user_id=user_id,
                customer_id=customer_id,
                session_id=session.id,
            )
        return session.url

    # =========================================================================
    # Webhook
    # =========================================================================

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> dict[str, bool]:
        """
        Verify a Stripe event and apply it to the matching profile.

        Raises:
            WebhookVerificationError: If the signature or secret is missing,
                or verification fails
        """
        try:
            secret = self.settings.webhook_secret
        except PaymentError:
            secret = None
        if not signature or not secret:
            raise WebhookVerificationError("Webhook Error: Missing signature or secret")

        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("webhook_verification_failed", error=str(e))
            raise WebhookVerificationError(f"Webhook Error: {e}") from e

        # Signature verified; read the event as plain data
        event = json.loads(payload)
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        customer_id = obj.get("customer")

        new_status = None
        if event_type in ACTIVATING_EVENTS and obj.get("status") in ACTIVE_STATUSES:
            changes = {"subscription_status": PlanStatus.ACTIVE}
            period_end = _period_end(obj)
            if period_end is not None:
                changes["trial_ends_at"] = period_end
            if await self._update_customer(customer_id, changes):
                new_status = PlanStatus.ACTIVE.value
        elif event_type == CANCELLING_EVENT:
            if await self._update_customer(
                customer_id, {"subscription_status": PlanStatus.EXPIRED}
            ):
                new_status = PlanStatus.EXPIRED.value

        logger.info(
            "webhook_processed",
            event_type=event_type,
            customer_id=customer_id,
            new_status=new_status,
        )
        if self._audit_logger:
            await self._audit_logger.log_webhook_processed(
                event_type=event_type,
                customer_id=customer_id,
                new_status=new_status,
            )
        return {"received": True}

    async def _update_customer(self, customer_id: Optional[str], changes: dict[str, Any]) -> int:
        """Apply `changes` to every profile of a Stripe customer."""
        if not customer_id:
            return 0
        storage = self._ledger.storage
        profiles = await storage.list(Profile, stripe_customer_id=customer_id)
        for profile in profiles:
            await storage.update(Profile, profile.id, changes)
        if not profiles:
            logger.warning("webhook_customer_unknown", customer_id=customer_id)
        return len(profiles)
