"""Payment method API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.adapters.stripe_adapter import StripeAdapter
from agency_billing.api.deps import current_user_id, get_current_user, get_db, get_payment_gateway
from agency_billing.schemas.payment_method import PaymentMethod, SetupIntent, SetupIntentConfirm
from agency_billing.services.payment_method_service import PaymentMethodService

router = APIRouter(prefix="/payment-methods", tags=["Payment Methods"])


@router.post("/setup-intent", response_model=SetupIntent, status_code=status.HTTP_201_CREATED)
async def create_setup_intent(
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> SetupIntent:
    """Start saving a card; creates the Stripe customer on first use."""
    client_secret = await PaymentMethodService(db, gateway).create_setup_intent(current_user_id(current_user))
    await db.commit()
    return SetupIntent(client_secret=client_secret)


@router.post("/confirm", response_model=PaymentMethod, status_code=status.HTTP_201_CREATED)
async def confirm_setup_intent(
    confirmation: SetupIntentConfirm,
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> PaymentMethod:
    """Save the card from a completed SetupIntent as the default payment method."""
    payment_method = await PaymentMethodService(db, gateway).save_from_setup_intent(
        current_user_id(current_user), confirmation.setup_intent_id
    )
    await db.commit()
    return payment_method


@router.get("", response_model=list[PaymentMethod])
async def list_payment_methods(
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> list[PaymentMethod]:
    """Saved payment methods, default first."""
    return await PaymentMethodService(db, gateway).list_payment_methods(current_user_id(current_user))


@router.post("/{payment_method_id}/default", response_model=PaymentMethod)
async def set_default_payment_method(
    payment_method_id: UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> PaymentMethod:
    """Make a payment method the default."""
    payment_method = await PaymentMethodService(db, gateway).set_default(
        payment_method_id, current_user_id(current_user)
    )
    await db.commit()
    return payment_method


@router.delete("/{payment_method_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_method(
    payment_method_id: UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeAdapter = Depends(get_payment_gateway),
    current_user: dict = Depends(get_current_user),
) -> None:
    """
    Remove a payment method.

    The only payment method cannot be removed while a subscription is active.
    """
    await PaymentMethodService(db, gateway).delete_payment_method(payment_method_id, current_user_id(current_user))
    await db.commit()
