"""Client billing API endpoints."""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.api.deps import current_user_id, get_current_user, get_db
from agency_billing.errors import InvoiceNotFoundError, NoActiveSubscriptionError
from agency_billing.models.invoice import InvoiceStatus
from agency_billing.schemas.hours_balance import PurchasedHours
from agency_billing.schemas.invoice import BillingSummary, Invoice, InvoiceDocument
from agency_billing.schemas.subscription import Subscription, SubscriptionUpdate
from agency_billing.services.invoice_service import InvoiceService
from agency_billing.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/summary", response_model=BillingSummary)
async def get_billing_summary(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> BillingSummary:
    """Paid and pending totals (major units), failed count and the five latest invoices."""
    return await InvoiceService(db).get_billing_summary(current_user_id(current_user))


@router.get("/invoices", response_model=list[Invoice])
async def list_invoices(
    status_filter: InvoiceStatus | None = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[Invoice]:
    """List the caller's invoices, newest first."""
    return await InvoiceService(db).get_client_invoices(current_user_id(current_user), status_filter)


@router.get("/invoices/{invoice_id}", response_model=Invoice)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """Get one of the caller's invoices."""
    invoice = await InvoiceService(db).get_invoice_by_id(invoice_id, current_user_id(current_user))
    if not invoice:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


@router.get("/invoices/{invoice_id}/document", response_model=InvoiceDocument)
async def get_invoice_document(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> InvoiceDocument:
    """Printable view of an invoice."""
    return await InvoiceService(db).build_invoice_document(invoice_id, current_user_id(current_user))


@router.post("/invoices/{invoice_id}/cancel", response_model=Invoice)
async def cancel_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """
    Cancel one of the caller's unpaid invoices.

    Paid invoices cannot be cancelled.
    """
    invoice = await InvoiceService(db).cancel_invoice(invoice_id, current_user_id(current_user))
    await db.commit()
    return invoice


@router.get("/payments", response_model=list[Invoice])
async def get_payment_history(
    start_date: datetime | None = Query(None, description="Paid on or after"),
    end_date: datetime | None = Query(None, description="Paid on or before"),
    limit: int | None = Query(None, ge=1, le=500, description="Maximum rows"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[Invoice]:
    """Paid invoices, most recent payment first."""
    return await InvoiceService(db).get_payment_history(
        current_user_id(current_user), start_date, end_date, limit
    )


@router.post("/extra-hours", response_model=Invoice, status_code=status.HTTP_201_CREATED)
async def purchase_extra_hours(
    purchase: PurchasedHours,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """
    Invoice a purchase of extra hours.

    The hours are credited to the current balance once the invoice is paid.
    """
    invoice = await InvoiceService(db).create_extra_hours_invoice(
        current_user_id(current_user),
        purchase.hours,
        payment_method_id=purchase.payment_method_id,
    )
    await db.commit()
    return invoice


@router.get("/subscription", response_model=Subscription)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Subscription:
    """The caller's active subscription."""
    subscription = await SubscriptionService(db).get_active_subscription(current_user_id(current_user))
    if not subscription:
        raise NoActiveSubscriptionError()
    return subscription


@router.get("/subscriptions", response_model=list[Subscription])
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[Subscription]:
    """All of the caller's subscriptions, newest first."""
    return await SubscriptionService(db).get_user_subscriptions(current_user_id(current_user))


@router.patch("/subscription", response_model=Subscription)
async def upgrade_subscription(
    update_data: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Subscription:
    """
    Change plan, price or hours of the active subscription.

    The current billing period is kept.
    """
    subscription = await SubscriptionService(db).update_subscription(current_user_id(current_user), update_data)
    await db.commit()
    return subscription


@router.post("/subscription/cancel", response_model=Subscription)
async def cancel_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Subscription:
    """Cancel the active subscription immediately."""
    subscription = await SubscriptionService(db).cancel_subscription(current_user_id(current_user))
    await db.commit()
    return subscription
