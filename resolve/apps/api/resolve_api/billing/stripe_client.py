"""Stripe client for strategy pack payments and the monthly plan.

Stripe API Reference:
- PaymentIntents: https://docs.stripe.com/api/payment_intents
- Subscriptions: https://docs.stripe.com/api/subscriptions
- Webhooks: https://docs.stripe.com/webhooks
"""

import logging
from typing import Any, Optional

import stripe

from resolve_api.config import env

logger = logging.getLogger(__name__)

CURRENCY = "aud"
STRATEGY_PACK_AMOUNT = 29900  # $299 AUD
MONTHLY_PLAN_AMOUNT = 4900  # $49 AUD
MONTHLY_PLAN_NAME = "Resolve Monthly Support"


class StripeClient:
    """Thin wrapper over the stripe SDK bound to one API key.

    Environment Variables:
    - STRIPE_SECRET_KEY: secret API key (sk_live_ / sk_test_)
    - STRIPE_WEBHOOK_SECRET: endpoint signing secret (whsec_)
    """

    def __init__(self):
        self.api_key = env.get_stripe_secret_key()

    def create_payment_intent(
        self,
        *,
        amount: int,
        metadata: dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Create a PaymentIntent in AUD.

        Args:
            amount: Amount in cents
            metadata: Stripe metadata (string values only)
            idempotency_key: Forwarded to Stripe when present

        Raises:
            stripe.StripeError: Stripe rejected the request
        """
        params: dict[str, Any] = {
            "amount": int(amount),
            "currency": CURRENCY,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
            "api_key": self.api_key,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        intent = stripe.PaymentIntent.create(**params)
        logger.info(
            "stripe.payment_intent.created",
            extra={"event": "stripe.payment_intent.created", "payment_intent_id": intent.id, "amount": amount},
        )
        return intent

    def create_customer(self, *, email: str, name: str, user_id: str) -> Any:
        customer = stripe.Customer.create(
            email=email,
            name=name,
            metadata={"user_id": user_id},
            api_key=self.api_key,
        )
        logger.info(
            "stripe.customer.created",
            extra={"event": "stripe.customer.created", "customer_id": customer.id},
        )
        return customer

    def create_monthly_subscription(
        self,
        *,
        customer_id: str,
        user_id: str,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Create the $49/month subscription in incomplete state.

        The first invoice's PaymentIntent is expanded so the client secret can
        be handed to the payment widget.
        """
        params: dict[str, Any] = {
            "customer": customer_id,
            "items": [
                {
                    "price_data": {
                        "currency": CURRENCY,
                        "product_data": {"name": MONTHLY_PLAN_NAME},
                        "unit_amount": MONTHLY_PLAN_AMOUNT,
                        "recurring": {"interval": "month"},
                    }
                }
            ],
            "payment_behavior": "default_incomplete",
            "expand": ["latest_invoice.payment_intent"],
            "metadata": {"type": "monthly_subscription", "user_id": user_id},
            "api_key": self.api_key,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        subscription = stripe.Subscription.create(**params)
        logger.info(
            "stripe.subscription.created",
            extra={"event": "stripe.subscription.created", "subscription_id": subscription.id},
        )
        return subscription

    def retrieve_subscription(self, subscription_id: str) -> Any:
        return stripe.Subscription.retrieve(
            subscription_id,
            expand=["latest_invoice.payment_intent"],
            api_key=self.api_key,
        )


def construct_webhook_event(payload: bytes, sig_header: str, secret: str) -> Any:
    """Verify the Stripe-Signature header, then parse the event.

    Raises:
        stripe.SignatureVerificationError: Signature or timestamp invalid
        ValueError: Payload is not valid JSON (checked after the signature)
    """
    return stripe.Webhook.construct_event(payload, sig_header, secret)


def latest_invoice_client_secret(subscription: Any) -> Optional[str]:
    """client_secret of the subscription's first invoice PaymentIntent, if expanded."""
    invoice = subscription.get("latest_invoice") if hasattr(subscription, "get") else None
    if not invoice or isinstance(invoice, str):
        return None
    payment_intent = invoice.get("payment_intent")
    if not payment_intent or isinstance(payment_intent, str):
        return None
    return payment_intent.get("client_secret")


# Global client instance (singleton)
_stripe_client: Optional[StripeClient] = None


def get_stripe_client() -> StripeClient:
    """Get global Stripe client instance (singleton).

    Returns:
        StripeClient instance

    Raises:
        ValueError: STRIPE_SECRET_KEY is not configured
    """
    global _stripe_client
    if _stripe_client is None:
        _stripe_client = StripeClient()
    return _stripe_client
