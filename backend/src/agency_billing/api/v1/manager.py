"""Manager API endpoints: activation, payment recording and time logging."""
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.adapters.stripe_adapter import StripeAdapter
from agency_billing.api.deps import get_current_user, get_db, get_payment_gateway
from agency_billing.auth.rbac import Role, require_roles
from agency_billing.schemas.activation import ActivationRequest, ActivationResult
from agency_billing.schemas.hours_balance import HoursBalance
from agency_billing.schemas.invoice import Invoice, InvoiceMarkFailed, InvoiceMarkPaid
from agency_billing.schemas.subscription import Subscription
from agency_billing.schemas.time_log import TimeLog, TimeLogCreate
from agency_billing.services.activation_service import ActivationService
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.invoice_service import InvoiceService
from agency_billing.services.subscription_service import SubscriptionService
from agency_billing.services.time_log_service import TimeLogService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/manager", tags=["Manager"])


@router.post(
    "/clients/{user_id}/activate",
    response_model=ActivationResult,
    status_code=status.HTTP_201_CREATED,
)
@require_roles(Role.MANAGER)
async def activate_subscription(
    user_id: UUID,
    activation: ActivationRequest,
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> ActivationResult:
    """
    Charge a client's default card and start their subscription.

    - **plan**: STARTER, GROWTH, ENTERPRISE or CUSTOM
    - **custom_price_amount**: Negotiated monthly price in minor units (required for ENTERPRISE)
    - **idempotency_key**: Charge idempotency key (optional)

    Nothing is recorded unless the charge succeeds or is processing.
    """
    result = await ActivationService(db, gateway).activate_subscription(
        user_id,
        activation.plan,
        custom_price_amount=activation.custom_price_amount,
        idempotency_key=activation.idempotency_key,
    )

    logger.info("activation_requested_by", manager_id=current_user.get("sub"), user_id=str(user_id))
    return result


@router.post("/clients/{user_id}/hours/reset", response_model=HoursBalance | None)
@require_roles(Role.MANAGER)
async def reset_monthly_balance(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> HoursBalance | None:
    """Open next month's hours balance; null when the client has no subscribed balance."""
    balance = await HoursBalanceService(db).reset_monthly_balance(user_id)
    await db.commit()
    return balance


@router.post(
    "/subscriptions/{subscription_id}/invoice",
    response_model=Invoice,
    status_code=status.HTTP_201_CREATED,
)
@require_roles(Role.MANAGER)
async def create_subscription_invoice(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """Bill the next interval of a subscription."""
    invoice = await InvoiceService(db).create_subscription_invoice(subscription_id)
    await db.commit()
    return invoice


@router.post("/invoices/{invoice_id}/paid", response_model=Invoice)
@require_roles(Role.MANAGER)
async def mark_invoice_paid(
    invoice_id: UUID,
    payment: InvoiceMarkPaid,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """Record payment of an invoice."""
    invoice = await InvoiceService(db).mark_as_paid(
        invoice_id,
        external_payment_reference_id=payment.external_payment_reference_id,
        paid_at=payment.paid_at,
    )
    await db.commit()
    return invoice


@router.post("/invoices/{invoice_id}/failed", response_model=Invoice)
@require_roles(Role.MANAGER)
async def mark_invoice_failed(
    invoice_id: UUID,
    failure: InvoiceMarkFailed,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Invoice:
    """Record a failed payment attempt."""
    invoice = await InvoiceService(db).mark_as_failed(invoice_id, failure.reason)
    await db.commit()
    return invoice


@router.post("/subscriptions/{subscription_id}/pause", response_model=Subscription)
@require_roles(Role.MANAGER)
async def pause_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Subscription:
    """Pause a subscription."""
    subscription = await SubscriptionService(db).pause_subscription(subscription_id)
    await db.commit()
    return subscription


@router.post("/subscriptions/{subscription_id}/resume", response_model=Subscription)
@require_roles(Role.MANAGER)
async def resume_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Subscription:
    """Resume a paused subscription; next billing date becomes one month from now."""
    subscription = await SubscriptionService(db).resume_subscription(subscription_id)
    await db.commit()
    return subscription


@router.post("/time-logs", response_model=TimeLog, status_code=status.HTTP_201_CREATED)
@require_roles(Role.TALENT)
async def log_time(
    time_log_data: TimeLogCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> TimeLog:
    """Record time worked for a client; drawn down from their current hours balance."""
    time_log = await TimeLogService(db).log_time(time_log_data)
    await db.commit()
    return time_log
