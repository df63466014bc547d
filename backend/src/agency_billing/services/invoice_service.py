"""Invoice service for business logic."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agency_billing.config import settings
from agency_billing.errors import (
    InvalidStateTransitionError,
    InvoiceAlreadyPaidError,
    InvoiceNotFoundError,
    PaymentMethodNotFoundError,
    SubscriptionNotFoundError,
    UnauthorizedError,
)
from agency_billing.metrics import (
    invoice_status_transitions_total,
    invoices_generated_total,
    payment_amount_total,
)
from agency_billing.models.invoice import Invoice, InvoiceStatus, TransactionType
from agency_billing.models.notification import NotificationType
from agency_billing.models.payment_method import PaymentMethod
from agency_billing.models.subscription import Subscription, SubscriptionStatus
from agency_billing.schemas.invoice import (
    BillingSummary,
    InvoiceDocument,
    InvoiceDocumentClient,
    InvoiceDocumentItem,
)
from agency_billing.schemas.invoice import Invoice as InvoiceSchema
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.notification_service import NotificationService
from agency_billing.utils.currency import format_amount, to_major_units
from agency_billing.utils.dates import add_months, utcnow

logger = structlog.get_logger(__name__)


class InvoiceService:
    """Service layer for invoice operations."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService | None = None,
        hours_balances: HoursBalanceService | None = None,
    ):
        """Initialize invoice service with database session."""
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.hours_balances = hours_balances or HoursBalanceService(db, notifications=self.notifications)

    async def generate_invoice_number(self) -> str:
        """
        Generate an invoice number.

        Format: INV-{epoch millis}-{sequence} (e.g., INV-1718000000000-004)

        Returns:
            Invoice number string
        """
        result = await self.db.execute(select(func.count()).select_from(Invoice))
        count = result.scalar() or 0

        millis = int(datetime.now().timestamp() * 1000)
        return f"INV-{millis}-{count + 1:03d}"

    async def create_subscription_invoice(self, subscription_id: UUID) -> Invoice:
        """
        Bill one interval of a subscription.

        Args:
            subscription_id: Subscription UUID

        Returns:
            UNPAID invoice due on the subscription's next billing date

        Raises:
            SubscriptionNotFoundError: If subscription not found
        """
        subscription = await self.db.get(Subscription, subscription_id)
        if not subscription:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")

        default_method = await self._get_default_payment_method(subscription.user_id)
        now = utcnow()

        invoice = Invoice(
            invoice_number=await self.generate_invoice_number(),
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            transaction_type=TransactionType.SUBSCRIPTION_RENEWAL,
            subtotal=subscription.price_amount,
            tax=0,
            total=subscription.price_amount,
            currency=subscription.currency,
            status=InvoiceStatus.UNPAID,
            invoice_date=now,
            due_date=subscription.next_billing_date or now,
            payment_method_id=default_method.id if default_method else None,
        )
        self.db.add(invoice)
        await self.db.flush()
        await self.db.refresh(invoice)

        await self.notifications.notify(
            user_id=invoice.user_id,
            type=NotificationType.INFO,
            title="New Invoice Generated",
            message=f"Invoice {invoice.invoice_number} for {format_amount(invoice.total, invoice.currency)}",
            action_url=f"/billing/invoices/{invoice.id}",
            action_label="View Invoice",
        )

        invoices_generated_total.labels(
            transaction_type=invoice.transaction_type.value, currency=invoice.currency
        ).inc()
        logger.info(
            "invoice_created",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            subscription_id=str(subscription_id),
            total=invoice.total,
        )
        return invoice

    async def create_extra_hours_invoice(
        self,
        user_id: UUID,
        hours: int,
        price_per_hour: int | None = None,
        payment_method_id: UUID | None = None,
    ) -> Invoice:
        """
        Bill a purchase of extra hours, due immediately.

        Args:
            user_id: Buyer
            hours: Hours purchased
            price_per_hour: Price of one hour in minor units (defaults to settings)
            payment_method_id: Payment method to charge (defaults to the user's default)

        Returns:
            UNPAID invoice

        Raises:
            PaymentMethodNotFoundError: If the given payment method does not exist
            UnauthorizedError: If the given payment method belongs to someone else
        """
        if price_per_hour is None:
            price_per_hour = settings.extra_hour_price
        amount = hours * price_per_hour
        currency = settings.default_currency

        if payment_method_id:
            payment_method = await self.db.get(PaymentMethod, payment_method_id)
            if not payment_method:
                raise PaymentMethodNotFoundError(f"Payment method {payment_method_id} not found")
            if payment_method.user_id != user_id:
                raise UnauthorizedError("Payment method does not belong to user")
        else:
            payment_method = await self._get_default_payment_method(user_id)

        now = utcnow()
        invoice = Invoice(
            invoice_number=await self.generate_invoice_number(),
            user_id=user_id,
            transaction_type=TransactionType.ADDITIONAL_HOURS,
            subtotal=amount,
            tax=0,
            total=amount,
            hours_purchased=hours,
            currency=currency,
            status=InvoiceStatus.UNPAID,
            invoice_date=now,
            due_date=now,
            description=f"{hours} extra hours @ {format_amount(price_per_hour, currency)}/hr",
            payment_method_id=payment_method.id if payment_method else None,
        )
        self.db.add(invoice)
        await self.db.flush()
        await self.db.refresh(invoice)

        await self.notifications.notify(
            user_id=user_id,
            type=NotificationType.INFO,
            title="Extra Hours Invoice",
            message=f"Invoice for {hours} extra hours ({format_amount(amount, currency)})",
            action_url=f"/billing/invoices/{invoice.id}",
            action_label="Pay Now",
        )

        invoices_generated_total.labels(
            transaction_type=invoice.transaction_type.value, currency=currency
        ).inc()
        logger.info(
            "invoice_created",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            hours=hours,
            total=amount,
        )
        return invoice

    async def record_paid_subscription_invoice(
        self,
        subscription: Subscription,
        payment_method_id: UUID | None,
        external_payment_reference_id: str | None,
        description: str | None = None,
    ) -> Invoice:
        """
        Record an invoice for a subscription charge that already went through.

        Used by activation, where the card is charged before any record exists.
        """
        now = utcnow()
        invoice = Invoice(
            invoice_number=await self.generate_invoice_number(),
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            transaction_type=TransactionType.SUBSCRIPTION_RENEWAL,
            description=description,
            subtotal=subscription.price_amount,
            tax=0,
            total=subscription.price_amount,
            currency=subscription.currency,
            status=InvoiceStatus.PAID,
            invoice_date=now,
            due_date=now,
            paid_at=now,
            payment_method_id=payment_method_id,
            external_payment_reference_id=external_payment_reference_id,
        )
        self.db.add(invoice)
        await self.db.flush()
        await self.db.refresh(invoice)

        invoices_generated_total.labels(
            transaction_type=invoice.transaction_type.value, currency=invoice.currency
        ).inc()
        payment_amount_total.labels(currency=invoice.currency).inc(invoice.total)
        logger.info(
            "invoice_recorded_paid",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            subscription_id=str(subscription.id),
            total=invoice.total,
        )
        return invoice

    async def mark_as_paid(
        self,
        invoice_id: UUID,
        external_payment_reference_id: str | None = None,
        paid_at: datetime | None = None,
    ) -> Invoice:
        """
        Record payment of an invoice.

        Renewal invoices reactivate their subscription and push the next
        billing date to one calendar month from now, unless the user already
        has another active subscription. Extra hours invoices
        credit the purchased hours to the current balance.

        Args:
            invoice_id: Invoice UUID
            external_payment_reference_id: Processor payment reference
            paid_at: Payment time (defaults to now)

        Returns:
            Paid invoice

        Raises:
            InvoiceNotFoundError: If invoice not found
            InvalidStateTransitionError: If invoice is already PAID or CANCELLED
        """
        invoice = await self._get_or_raise(invoice_id)
        if invoice.status not in (InvoiceStatus.UNPAID, InvoiceStatus.FAILED):
            raise InvalidStateTransitionError(
                f"Cannot mark {invoice.status.value} invoice as paid"
            )

        now = utcnow()
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = paid_at or now
        if external_payment_reference_id:
            invoice.external_payment_reference_id = external_payment_reference_id

        if invoice.transaction_type == TransactionType.SUBSCRIPTION_RENEWAL and invoice.subscription_id:
            subscription = await self.db.get(Subscription, invoice.subscription_id)
            if subscription:
                await self._reactivate_for_renewal(subscription, now)

        await self.db.flush()

        if invoice.transaction_type == TransactionType.ADDITIONAL_HOURS and invoice.hours_purchased:
            await self._credit_purchased_hours(invoice)

        await self.db.refresh(invoice)

        await self.notifications.notify(
            user_id=invoice.user_id,
            type=NotificationType.SUCCESS,
            title="Payment Received",
            message=f"Payment of {format_amount(invoice.total, invoice.currency)} processed successfully",
            action_url=f"/billing/invoices/{invoice.id}",
            action_label="View Receipt",
        )

        invoice_status_transitions_total.labels(status=InvoiceStatus.PAID.value).inc()
        payment_amount_total.labels(currency=invoice.currency).inc(invoice.total)
        logger.info(
            "invoice_paid",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            total=invoice.total,
            external_payment_reference_id=invoice.external_payment_reference_id,
        )
        return invoice

    async def mark_as_failed(self, invoice_id: UUID, reason: str | None = None) -> Invoice:
        """
        Record a failed payment attempt.

        Raises:
            InvoiceNotFoundError: If invoice not found
            InvalidStateTransitionError: If invoice is not UNPAID
        """
        invoice = await self._get_or_raise(invoice_id)
        if invoice.status != InvoiceStatus.UNPAID:
            raise InvalidStateTransitionError(
                f"Cannot mark {invoice.status.value} invoice as failed"
            )

        invoice.status = InvoiceStatus.FAILED
        if reason:
            failure = f"Failed: {reason}"
            invoice.description = f"{invoice.description} | {failure}" if invoice.description else failure

        await self.db.flush()
        await self.db.refresh(invoice)

        await self.notifications.notify(
            user_id=invoice.user_id,
            type=NotificationType.ERROR,
            title="Payment Failed",
            message=reason or "Your payment could not be processed",
            action_url=f"/billing/invoices/{invoice.id}",
            action_label="Retry Payment",
        )

        invoice_status_transitions_total.labels(status=InvoiceStatus.FAILED.value).inc()
        logger.warning("invoice_payment_failed", invoice_id=str(invoice.id), reason=reason)
        return invoice

    async def cancel_invoice(self, invoice_id: UUID, owner_user_id: UUID | None = None) -> Invoice:
        """
        Cancel an invoice that has not been paid.

        Args:
            invoice_id: Invoice UUID
            owner_user_id: When given, the invoice must belong to this user

        Returns:
            Cancelled invoice

        Raises:
            InvoiceNotFoundError: If invoice not found
            UnauthorizedError: If the owner does not match
            InvoiceAlreadyPaidError: If the invoice is PAID
        """
        invoice = await self._get_or_raise(invoice_id)
        if owner_user_id and invoice.user_id != owner_user_id:
            raise UnauthorizedError("Unauthorized access to invoice")
        if invoice.status == InvoiceStatus.PAID:
            raise InvoiceAlreadyPaidError()

        invoice.status = InvoiceStatus.CANCELLED
        await self.db.flush()
        await self.db.refresh(invoice)

        invoice_status_transitions_total.labels(status=InvoiceStatus.CANCELLED.value).inc()
        logger.info("invoice_cancelled", invoice_id=str(invoice.id))
        return invoice

    async def get_invoice_by_id(self, invoice_id: UUID, owner_user_id: UUID | None = None) -> Invoice | None:
        """
        Get invoice by ID.

        Args:
            invoice_id: Invoice UUID
            owner_user_id: When given, the invoice must belong to this user

        Returns:
            Invoice or None if not found

        Raises:
            UnauthorizedError: If the owner does not match
        """
        result = await self.db.execute(
            select(Invoice)
            .options(
                selectinload(Invoice.user),
                selectinload(Invoice.subscription),
                selectinload(Invoice.payment_method),
            )
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice and owner_user_id and invoice.user_id != owner_user_id:
            raise UnauthorizedError("Unauthorized access to invoice")
        return invoice

    async def get_client_invoices(self, user_id: UUID, status: InvoiceStatus | None = None) -> list[Invoice]:
        """List a client's invoices, newest first."""
        query = select(Invoice).where(Invoice.user_id == user_id)
        if status:
            query = query.where(Invoice.status == status)
        query = query.order_by(Invoice.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_billing_summary(self, user_id: UUID) -> BillingSummary:
        """
        Summarize a client's invoices.

        Paid and pending totals are converted to major units; failed invoices
        are counted.
        """
        paid = await self._sum_total(user_id, InvoiceStatus.PAID)
        pending = await self._sum_total(user_id, InvoiceStatus.UNPAID)
        failed = await self.db.scalar(
            select(func.count())
            .select_from(Invoice)
            .where(Invoice.user_id == user_id, Invoice.status == InvoiceStatus.FAILED)
        )

        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.user_id == user_id)
            .order_by(Invoice.created_at.desc())
            .limit(5)
        )
        recent = result.scalars().all()

        currency = settings.default_currency
        return BillingSummary(
            total_paid=to_major_units(paid, currency),
            total_pending=to_major_units(pending, currency),
            total_failed=failed or 0,
            recent_invoices=[InvoiceSchema.model_validate(invoice) for invoice in recent],
        )

    async def get_payment_history(
        self,
        user_id: UUID,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int | None = None,
    ) -> list[Invoice]:
        """List PAID invoices by payment time, newest first, within an optional range."""
        query = select(Invoice).where(Invoice.user_id == user_id, Invoice.status == InvoiceStatus.PAID)
        if start_date and end_date:
            query = query.where(Invoice.paid_at >= start_date, Invoice.paid_at <= end_date)
        query = query.order_by(Invoice.paid_at.desc())
        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def build_invoice_document(self, invoice_id: UUID, owner_user_id: UUID | None = None) -> InvoiceDocument:
        """
        Build the printable view of an invoice.

        Raises:
            InvoiceNotFoundError: If invoice not found
            UnauthorizedError: If the owner does not match
        """
        invoice = await self.get_invoice_by_id(invoice_id, owner_user_id)
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        if invoice.transaction_type == TransactionType.SUBSCRIPTION_RENEWAL and invoice.subscription:
            item_description = f"{invoice.subscription.plan.value} Plan - {invoice.subscription.monthly_hours} hours"
        else:
            item_description = invoice.description or invoice.transaction_type.value

        user = invoice.user
        return InvoiceDocument(
            invoice_number=invoice.invoice_number,
            date=invoice.created_at,
            due_date=invoice.due_date,
            amount=invoice.total,
            formatted_amount=format_amount(invoice.total, invoice.currency),
            currency=invoice.currency,
            status=invoice.status,
            client=InvoiceDocumentClient(
                name=user.full_name or "N/A",
                company=user.company_name or "N/A",
                email=user.email or "N/A",
            ),
            items=[InvoiceDocumentItem(description=item_description, amount=invoice.total)],
        )

    async def _get_or_raise(self, invoice_id: UUID) -> Invoice:
        invoice = await self.db.get(Invoice, invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    async def _reactivate_for_renewal(self, subscription: Subscription, now: datetime) -> None:
        """
        Reactivate a renewed subscription unless another one is already active.

        The payment stands either way; a user who moved to a new subscription
        keeps it and the renewed one stays as it was.
        """
        other_active = await self.db.scalar(
            select(Subscription.id).where(
                Subscription.user_id == subscription.user_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.id != subscription.id,
            ).limit(1)
        )
        if other_active:
            logger.warning(
                "renewal_reactivation_skipped",
                subscription_id=str(subscription.id),
                active_subscription_id=str(other_active),
            )
            return

        subscription.status = SubscriptionStatus.ACTIVE
        subscription.next_billing_date = add_months(now, 1)

    async def _get_default_payment_method(self, user_id: UUID) -> PaymentMethod | None:
        result = await self.db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id, PaymentMethod.is_default.is_(True))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _sum_total(self, user_id: UUID, status: InvoiceStatus) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Invoice.total), 0)).where(
                Invoice.user_id == user_id, Invoice.status == status
            )
        )
        return int(total or 0)

    async def _credit_purchased_hours(self, invoice: Invoice) -> None:
        balance = await self.hours_balances.get_current_balance(invoice.user_id)
        if not balance:
            logger.warning(
                "purchased_hours_not_credited",
                invoice_id=str(invoice.id),
                user_id=str(invoice.user_id),
                hours=invoice.hours_purchased,
            )
            return
        await self.hours_balances.add_purchased_hours(invoice.user_id, invoice.hours_purchased)
