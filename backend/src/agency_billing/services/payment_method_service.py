"""Payment method service: local mirror of methods saved with Stripe."""
from uuid import UUID

import structlog
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.adapters.stripe_adapter import StripeAdapter
from agency_billing.errors import (
    PaymentMethodInUseError,
    PaymentMethodNotFoundError,
    SetupIntentNotSucceededError,
    UnauthorizedError,
    UserNotFoundError,
)
from agency_billing.models.payment_method import PaymentMethod, PaymentMethodType
from agency_billing.models.subscription import Subscription, SubscriptionStatus
from agency_billing.models.user import User
from agency_billing.schemas.payment_method import PaymentMethodCreate

logger = structlog.get_logger(__name__)


class PaymentMethodService:
    """Service layer for payment method operations."""

    def __init__(self, db: AsyncSession, gateway: StripeAdapter | None = None):
        """Initialize payment method service with database session and gateway."""
        self.db = db
        self.gateway = gateway or StripeAdapter()

    async def get_or_create_customer(self, user_id: UUID) -> str:
        """
        Return the user's Stripe customer ID, creating the customer on first use.

        Raises:
            UserNotFoundError: If user not found
        """
        user = await self.db.get(User, user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer_id = await self.gateway.create_customer(
            email=user.email,
            name=user.full_name,
            metadata={"user_id": str(user.id)},
        )
        user.stripe_customer_id = customer_id
        await self.db.flush()

        logger.info("payment_customer_created", user_id=str(user_id), customer_id=customer_id)
        return customer_id

    async def create_setup_intent(self, user_id: UUID) -> str:
        """
        Start saving a card.

        Returns:
            Client secret for the portal's card form
        """
        customer_id = await self.get_or_create_customer(user_id)
        setup_intent = await self.gateway.create_setup_intent(customer_id)

        logger.info("setup_intent_created", user_id=str(user_id), setup_intent_id=setup_intent["id"])
        return setup_intent["client_secret"]

    async def save_from_setup_intent(self, user_id: UUID, setup_intent_id: str) -> PaymentMethod:
        """
        Mirror the payment method of a completed SetupIntent.

        The saved method becomes the user's default. Confirming the same
        SetupIntent twice returns the existing row.

        Raises:
            SetupIntentNotSucceededError: If the SetupIntent has not succeeded
        """
        setup_intent = await self.gateway.retrieve_setup_intent(setup_intent_id)
        if setup_intent["status"] != "succeeded" or not setup_intent.get("payment_method_id"):
            raise SetupIntentNotSucceededError(
                f"Setup intent {setup_intent_id} has status {setup_intent['status']}"
            )

        gateway_id = setup_intent["payment_method_id"]
        result = await self.db.execute(
            select(PaymentMethod).where(
                PaymentMethod.user_id == user_id,
                PaymentMethod.gateway_payment_method_id == gateway_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        details = await self.gateway.retrieve_payment_method(gateway_id)
        card = details.get("card") or {}

        return await self.add_payment_method(
            user_id,
            PaymentMethodCreate(
                type=PaymentMethodType.CARD,
                gateway_payment_method_id=gateway_id,
                card_brand=card["brand"].upper() if card.get("brand") else None,
                card_last4=card.get("last4"),
                card_exp_month=card.get("exp_month"),
                card_exp_year=card.get("exp_year"),
                billing_email=details.get("billing_email"),
                is_default=True,
            ),
        )

    async def add_payment_method(self, user_id: UUID, data: PaymentMethodCreate) -> PaymentMethod:
        """
        Record a payment method.

        The user's first method is always the default.
        """
        existing_count = await self.db.scalar(
            select(func.count()).select_from(PaymentMethod).where(PaymentMethod.user_id == user_id)
        )
        is_default = data.is_default or not existing_count

        if is_default:
            await self._clear_default(user_id)

        payment_method = PaymentMethod(user_id=user_id, **data.model_dump(exclude={"is_default"}), is_default=is_default)
        self.db.add(payment_method)
        await self.db.flush()
        await self.db.refresh(payment_method)

        logger.info(
            "payment_method_added",
            payment_method_id=str(payment_method.id),
            user_id=str(user_id),
            is_default=is_default,
        )
        return payment_method

    async def set_default(self, payment_method_id: UUID, user_id: UUID) -> PaymentMethod:
        """
        Make a payment method the user's default.

        Raises:
            PaymentMethodNotFoundError: If payment method not found
            UnauthorizedError: If it belongs to another user
        """
        payment_method = await self._get_owned(payment_method_id, user_id)

        await self._clear_default(user_id)
        payment_method.is_default = True
        await self.db.flush()
        await self.db.refresh(payment_method)

        logger.info("payment_method_default_set", payment_method_id=str(payment_method_id), user_id=str(user_id))
        return payment_method

    async def delete_payment_method(self, payment_method_id: UUID, user_id: UUID) -> None:
        """
        Delete a payment method and detach it from Stripe.

        Deleting the default promotes the newest remaining method.

        Raises:
            PaymentMethodNotFoundError: If payment method not found
            UnauthorizedError: If it belongs to another user
            PaymentMethodInUseError: If it is the only method and a subscription is active
        """
        payment_method = await self._get_owned(payment_method_id, user_id)

        result = await self.db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id, PaymentMethod.id != payment_method_id)
            .order_by(PaymentMethod.created_at.desc())
        )
        others = list(result.scalars().all())

        if not others:
            active = await self.db.scalar(
                select(func.count())
                .select_from(Subscription)
                .where(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
            )
            if active:
                raise PaymentMethodInUseError()

        was_default = payment_method.is_default
        gateway_id = payment_method.gateway_payment_method_id

        await self.db.delete(payment_method)
        await self.db.flush()

        if was_default and others:
            others[0].is_default = True
            await self.db.flush()

        if gateway_id:
            await self.gateway.detach_payment_method(gateway_id)

        logger.info(
            "payment_method_deleted",
            payment_method_id=str(payment_method_id),
            user_id=str(user_id),
            promoted=str(others[0].id) if was_default and others else None,
        )

    async def list_payment_methods(self, user_id: UUID) -> list[PaymentMethod]:
        """List a user's payment methods, default first, then newest."""
        result = await self.db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id)
            .order_by(PaymentMethod.is_default.desc(), PaymentMethod.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_default_payment_method(self, user_id: UUID) -> PaymentMethod | None:
        """Get the user's default payment method."""
        result = await self.db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id, PaymentMethod.is_default.is_(True))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _get_owned(self, payment_method_id: UUID, user_id: UUID) -> PaymentMethod:
        payment_method = await self.db.get(PaymentMethod, payment_method_id)
        if not payment_method:
            raise PaymentMethodNotFoundError(f"Payment method {payment_method_id} not found")
        if payment_method.user_id != user_id:
            raise UnauthorizedError("Unauthorized access to payment method")
        return payment_method

    async def _clear_default(self, user_id: UUID) -> None:
        await self.db.execute(
            update(PaymentMethod)
            .where(PaymentMethod.user_id == user_id, PaymentMethod.is_default.is_(True))
            .values(is_default=False)
        )
