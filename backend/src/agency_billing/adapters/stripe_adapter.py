"""Stripe payment gateway adapter."""
import stripe
from typing import Any

import structlog

from agency_billing.config import settings

logger = structlog.get_logger(__name__)


class StripeAdapter:
    """
    Adapter for Stripe payment gateway integration.

    Only plain dicts cross this boundary; services never see Stripe objects.
    """

    def __init__(self):
        """Initialize Stripe adapter with API key."""
        stripe.api_key = settings.stripe_secret_key

    async def create_customer(self, email: str, name: str, metadata: dict[str, Any] | None = None) -> str:
        """
        Create a Stripe customer.

        Args:
            email: Customer email
            name: Customer name
            metadata: Additional metadata

        Returns:
            Stripe customer ID
        """
        customer = stripe.Customer.create(
            email=email,
            name=name,
            metadata=metadata or {},
        )
        return customer.id

    async def create_setup_intent(self, customer_id: str) -> dict[str, Any]:
        """
        Create a SetupIntent for saving a card for off-session use.

        Args:
            customer_id: Stripe customer ID

        Returns:
            SetupIntent id and client secret
        """
        setup_intent = stripe.SetupIntent.create(
            customer=customer_id,
            payment_method_types=["card"],
            usage="off_session",
        )
        return {"id": setup_intent.id, "client_secret": setup_intent.client_secret}

    async def retrieve_setup_intent(self, setup_intent_id: str) -> dict[str, Any]:
        """
        Retrieve SetupIntent status.

        Returns:
            Status and the saved payment method ID (None until it succeeds)
        """
        setup_intent = stripe.SetupIntent.retrieve(setup_intent_id)
        payment_method = setup_intent.payment_method
        if payment_method is not None and not isinstance(payment_method, str):
            payment_method = payment_method.id

        return {
            "id": setup_intent.id,
            "status": setup_intent.status,
            "payment_method_id": payment_method,
        }

    async def retrieve_payment_method(self, payment_method_id: str) -> dict[str, Any]:
        """
        Retrieve payment method details.

        Args:
            payment_method_id: Stripe payment method ID

        Returns:
            Payment method details
        """
        payment_method = stripe.PaymentMethod.retrieve(payment_method_id)
        card = payment_method.card
        billing_details = payment_method.billing_details

        return {
            "id": payment_method.id,
            "type": payment_method.type,
            "card": {
                "brand": card.brand,
                "last4": card.last4,
                "exp_month": card.exp_month,
                "exp_year": card.exp_year,
            }
            if card
            else None,
            "billing_email": billing_details.email if billing_details else None,
        }

    async def detach_payment_method(self, payment_method_id: str) -> None:
        """
        Detach payment method from customer.

        Args:
            payment_method_id: Stripe payment method ID
        """
        stripe.PaymentMethod.detach(payment_method_id)

    async def charge_off_session(
        self,
        customer_id: str,
        payment_method_id: str,
        amount: int,
        currency: str,
        idempotency_key: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Charge a saved payment method without the customer present.

        Args:
            customer_id: Stripe customer ID
            payment_method_id: Stripe payment method ID
            amount: Amount in minor units
            currency: ISO currency code
            idempotency_key: Idempotency key for retries
            metadata: Additional metadata

        Returns:
            Payment intent id and status; declines carry an ``error`` message
        """
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "customer": customer_id,
            "payment_method": payment_method_id,
            "off_session": True,
            "confirm": True,
            "metadata": metadata or {},
        }

        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            payment_intent = stripe.PaymentIntent.create(**params)

            return {
                "id": payment_intent.id,
                "status": payment_intent.status,
                "amount": payment_intent.amount,
                "currency": payment_intent.currency,
            }
        except stripe.CardError as e:
            # Declines and authentication_required still carry the intent
            payment_intent = getattr(e.error, "payment_intent", None) if e.error else None
            logger.warning("stripe_card_error", code=e.code, customer_id=customer_id)
            return {
                "id": payment_intent.id if payment_intent else None,
                "status": payment_intent.status if payment_intent else "failed",
                "error": e.user_message,
            }
        except stripe.StripeError as e:
            logger.error("stripe_charge_error", error=str(e), customer_id=customer_id)
            return {
                "id": None,
                "status": "failed",
                "error": str(e),
            }

    async def refund_charge(self, payment_intent_id: str, idempotency_key: str | None = None) -> dict[str, Any]:
        """
        Refund a payment intent in full.

        Args:
            payment_intent_id: Stripe payment intent ID
            idempotency_key: Idempotency key for retries

        Returns:
            Refund details
        """
        params: dict[str, Any] = {"payment_intent": payment_intent_id}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        refund = stripe.Refund.create(**params)

        return {
            "id": refund.id,
            "status": refund.status,
            "amount": refund.amount,
        }
