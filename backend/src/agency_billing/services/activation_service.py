"""Subscription activation: charge a saved card, then record the paid service."""
from uuid import UUID, uuid4

import stripe
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.adapters.stripe_adapter import StripeAdapter
from agency_billing.config import settings
from agency_billing.errors import (
    ActiveSubscriptionExistsError,
    EnterpriseRequiresCustomPriceError,
    InvalidPlanError,
    NoCustomerReferenceError,
    NoPaymentMethodError,
    PaymentFailedError,
    PaymentRequiresAuthenticationError,
    UserNotFoundError,
)
from agency_billing.metrics import activations_total, refunds_issued_total
from agency_billing.models.notification import NotificationType
from agency_billing.models.subscription import BillingInterval, SubscriptionPlan
from agency_billing.models.user import User
from agency_billing.schemas.activation import ActivationResult
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.invoice_service import InvoiceService
from agency_billing.services.notification_service import NotificationService
from agency_billing.services.payment_method_service import PaymentMethodService
from agency_billing.services.plan_catalog import PlanCatalog, default_plan_catalog
from agency_billing.services.subscription_service import SubscriptionService
from agency_billing.utils.currency import format_amount

logger = structlog.get_logger(__name__)

PROCEED_STATUSES = {"succeeded", "processing"}
AUTHENTICATION_STATUSES = {"requires_action", "requires_payment_method"}


class ActivationService:
    """
    Charges a client's default card and starts a paid subscription.

    Sequence: resolve pricing, charge, create subscription, record the paid
    invoice, open the hours balance, commit. Nothing is written unless the charge
    succeeds or is processing. If any write or the commit fails after a
    charge, the session is rolled back and the charge is refunded before the
    error propagates.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: StripeAdapter | None = None,
        catalog: PlanCatalog | None = None,
    ):
        """Initialize activation service with database session, gateway and catalog."""
        self.db = db
        self.gateway = gateway or StripeAdapter()
        self.catalog = catalog or default_plan_catalog()
        self.notifications = NotificationService(db)
        self.subscriptions = SubscriptionService(db, catalog=self.catalog, notifications=self.notifications)
        self.invoices = InvoiceService(db, notifications=self.notifications)
        self.hours_balances = HoursBalanceService(db, notifications=self.notifications)
        self.payment_methods = PaymentMethodService(db, gateway=self.gateway)

    def resolve_pricing(self, plan: SubscriptionPlan, custom_price_amount: int | None = None) -> tuple[int, int]:
        """
        Resolve the monthly price and hours to activate.

        A custom price always wins and carries no hour allocation (unmetered).

        Returns:
            (price in minor units, monthly hours)

        Raises:
            UnknownPlanError: If the plan is not in the catalog
            EnterpriseRequiresCustomPriceError: ENTERPRISE without a custom price
            InvalidPlanError: Any other custom-priced plan without a custom price
        """
        if custom_price_amount is not None:
            return custom_price_amount, 0

        definition = self.catalog.get_plan_config(plan)
        if definition.requires_custom_price:
            if definition.plan == SubscriptionPlan.ENTERPRISE:
                raise EnterpriseRequiresCustomPriceError()
            raise InvalidPlanError(f"{definition.plan.value} plan requires a custom price")
        return definition.monthly_price, definition.monthly_hours

    async def activate_subscription(
        self,
        user_id: UUID,
        plan: SubscriptionPlan,
        custom_price_amount: int | None = None,
        idempotency_key: str | None = None,
    ) -> ActivationResult:
        """
        Charge the user's default card and activate a monthly subscription.

        Args:
            user_id: Client to activate
            plan: Plan to activate
            custom_price_amount: Negotiated monthly price in minor units
            idempotency_key: Charge idempotency key (generated when omitted)

        Returns:
            IDs of the subscription, invoice and hours balance written

        Raises:
            UserNotFoundError: If user not found
            NoCustomerReferenceError: If the user has no Stripe customer
            NoPaymentMethodError: If the user has no default payment method
            ActiveSubscriptionExistsError: If the user already has an ACTIVE subscription
            PaymentRequiresAuthenticationError: If the card needs the customer present
            PaymentFailedError: If the charge did not go through
        """
        user = await self.db.get(User, user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        if not user.stripe_customer_id:
            raise NoCustomerReferenceError()

        payment_method = await self.payment_methods.get_default_payment_method(user_id)
        if not payment_method or not payment_method.gateway_payment_method_id:
            raise NoPaymentMethodError()

        price_amount, monthly_hours = self.resolve_pricing(plan, custom_price_amount)

        existing = await self.subscriptions.get_active_subscription(user_id)
        if existing:
            raise ActiveSubscriptionExistsError(
                f"User {user_id} already has active subscription {existing.id}"
            )

        charge = await self.gateway.charge_off_session(
            customer_id=user.stripe_customer_id,
            payment_method_id=payment_method.gateway_payment_method_id,
            amount=price_amount,
            currency=settings.default_currency,
            idempotency_key=idempotency_key or f"activation-{user_id}-{plan.value}-{uuid4()}",
            metadata={"user_id": str(user_id), "plan": plan.value},
        )
        status = charge["status"]
        logger.info(
            "activation_charge_result",
            user_id=str(user_id),
            plan=plan.value,
            payment_intent_id=charge.get("id"),
            status=status,
        )

        if status in AUTHENTICATION_STATUSES:
            activations_total.labels(plan=plan.value, outcome="requires_authentication").inc()
            logger.warning("activation_requires_authentication", user_id=str(user_id), status=status)
            raise PaymentRequiresAuthenticationError()
        if status not in PROCEED_STATUSES:
            activations_total.labels(plan=plan.value, outcome="payment_failed").inc()
            logger.error("activation_payment_failed", user_id=str(user_id), status=status, error=charge.get("error"))
            raise PaymentFailedError(status)

        payment_method_id = payment_method.id
        try:
            subscription = await self.subscriptions.create_subscription(
                user_id=user_id,
                plan=plan,
                billing_interval=BillingInterval.MONTHLY,
                price_amount=price_amount,
                monthly_hours=monthly_hours,
            )
            invoice = await self.invoices.record_paid_subscription_invoice(
                subscription,
                payment_method_id=payment_method_id,
                external_payment_reference_id=charge.get("id"),
                description=f"{plan.value} Plan - First Month",
            )
            balance = None
            if monthly_hours > 0:
                balance = await self.hours_balances.create_period_balance(
                    user_id=user_id,
                    subscription_id=subscription.id,
                    monthly_hours=monthly_hours,
                    period_start=subscription.current_period_start,
                    period_end=subscription.current_period_end,
                )

            await self.notifications.notify(
                user_id=user_id,
                type=NotificationType.SUCCESS,
                title="Subscription Activated",
                message=f"Your {plan.value} plan is active ({format_amount(price_amount, subscription.currency)}/month)",
                action_url="/billing",
                action_label="View Billing",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            activations_total.labels(plan=plan.value, outcome="write_failed").inc()
            await self._refund(charge.get("id"), user_id)
            raise

        activations_total.labels(plan=plan.value, outcome="succeeded").inc()
        logger.info(
            "subscription_activated",
            user_id=str(user_id),
            subscription_id=str(subscription.id),
            invoice_id=str(invoice.id),
            balance_id=str(balance.id) if balance else None,
            payment_status=status,
        )

        return ActivationResult(
            subscription_id=subscription.id,
            invoice_id=invoice.id,
            balance_id=balance.id if balance else None,
            payment_status=status,
        )

    async def _refund(self, payment_intent_id: str | None, user_id: UUID) -> None:
        """Give the money back for a charge whose records could not be written."""
        if not payment_intent_id:
            logger.error("activation_refund_skipped", user_id=str(user_id), reason="no payment intent id")
            return

        logger.warning(
            "activation_compensating_refund",
            user_id=str(user_id),
            payment_intent_id=payment_intent_id,
        )
        try:
            await self.gateway.refund_charge(payment_intent_id, idempotency_key=f"refund-{payment_intent_id}")
        except stripe.StripeError as e:
            # The write failure stays the error the caller sees.
            logger.error(
                "activation_refund_failed",
                user_id=str(user_id),
                payment_intent_id=payment_intent_id,
                error=str(e),
            )
            return
        refunds_issued_total.inc()
