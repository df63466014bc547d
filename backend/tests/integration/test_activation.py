"""Integration tests for charging a client and activating their subscription."""
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import stripe
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

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
from agency_billing.models.hours_balance import HoursBalance
from agency_billing.models.invoice import Invoice, InvoiceStatus, TransactionType
from agency_billing.models.notification import Notification
from agency_billing.models.subscription import BillingInterval, Subscription, SubscriptionPlan, SubscriptionStatus
from agency_billing.models.user import User
from agency_billing.services.activation_service import ActivationService

from utils.factories import UserFactory
from utils.fakes import FakePaymentGateway


async def count_rows(db_session: AsyncSession, model) -> int:
    return await db_session.scalar(select(func.count()).select_from(model))


async def assert_nothing_written(db_session: AsyncSession) -> None:
    assert await count_rows(db_session, Subscription) == 0
    assert await count_rows(db_session, Invoice) == 0
    assert await count_rows(db_session, HoursBalance) == 0


@pytest.mark.asyncio
async def test_activate_starter(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """Charge succeeds: one active subscription, one paid invoice, one fresh balance."""
    service = ActivationService(db_session, gateway=fake_gateway)

    result = await service.activate_subscription(client_user.id, SubscriptionPlan.STARTER)
    await db_session.commit()

    assert result.payment_status == "succeeded"
    assert len(fake_gateway.charges) == 1
    charge = fake_gateway.charges[0]
    assert charge["amount"] == 125000
    assert charge["currency"] == "USD"
    assert charge["customer_id"] == client_user.stripe_customer_id

    subscriptions = (await db_session.execute(select(Subscription))).scalars().all()
    assert len(subscriptions) == 1
    subscription = subscriptions[0]
    assert subscription.id == result.subscription_id
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.billing_interval == BillingInterval.MONTHLY
    assert subscription.price_amount == 125000
    assert subscription.monthly_hours == 200

    invoices = (await db_session.execute(select(Invoice))).scalars().all()
    assert len(invoices) == 1
    invoice = invoices[0]
    assert invoice.id == result.invoice_id
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.transaction_type == TransactionType.SUBSCRIPTION_RENEWAL
    assert invoice.total == 125000
    assert invoice.paid_at is not None
    assert invoice.external_payment_reference_id == charge["id"]
    assert invoice.description == "STARTER Plan - First Month"

    balances = (await db_session.execute(select(HoursBalance))).scalars().all()
    assert len(balances) == 1
    balance = balances[0]
    assert balance.id == result.balance_id
    assert balance.allocated_hours == 200
    assert balance.hours_used == Decimal("0")
    assert balance.period_start == subscription.current_period_start
    assert balance.period_end == subscription.current_period_end

    notification = (await db_session.execute(select(Notification))).scalar_one()
    assert notification.title == "Subscription Activated"
    assert fake_gateway.refunds == []


@pytest.mark.asyncio
async def test_processing_charge_proceeds(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    fake_gateway.charge_status = "processing"

    result = await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
        client_user.id, SubscriptionPlan.GROWTH
    )

    assert result.payment_status == "processing"
    assert await count_rows(db_session, Subscription) == 1


@pytest.mark.asyncio
async def test_enterprise_requires_custom_price(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """No custom price: refused before charging, nothing written."""
    service = ActivationService(db_session, gateway=fake_gateway)

    with pytest.raises(EnterpriseRequiresCustomPriceError):
        await service.activate_subscription(client_user.id, SubscriptionPlan.ENTERPRISE)

    assert fake_gateway.charges == []
    await assert_nothing_written(db_session)


@pytest.mark.asyncio
async def test_custom_plan_requires_custom_price(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    with pytest.raises(InvalidPlanError):
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            client_user.id, SubscriptionPlan.CUSTOM
        )

    assert fake_gateway.charges == []


@pytest.mark.asyncio
async def test_custom_price_is_unmetered(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """A negotiated price is charged as is and opens no hours balance."""
    result = await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
        client_user.id, SubscriptionPlan.ENTERPRISE, custom_price_amount=500000
    )

    assert result.balance_id is None
    assert fake_gateway.charges[0]["amount"] == 500000
    assert await count_rows(db_session, HoursBalance) == 0

    subscription = await db_session.get(Subscription, result.subscription_id)
    assert subscription.monthly_hours == 0
    assert subscription.price_amount == 500000


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["requires_action", "requires_payment_method"])
async def test_charge_needs_authentication(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway, status: str
) -> None:
    fake_gateway.charge_status = status

    with pytest.raises(PaymentRequiresAuthenticationError):
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            client_user.id, SubscriptionPlan.STARTER
        )

    await assert_nothing_written(db_session)
    assert fake_gateway.refunds == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["canceled", "failed"])
async def test_charge_failed(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway, status: str
) -> None:
    fake_gateway.charge_status = status

    with pytest.raises(PaymentFailedError) as exc_info:
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            client_user.id, SubscriptionPlan.STARTER
        )

    assert exc_info.value.status == status
    await assert_nothing_written(db_session)


@pytest.mark.asyncio
async def test_existing_subscription_is_not_charged(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """A second activation is refused before the card is touched."""
    service = ActivationService(db_session, gateway=fake_gateway)
    await service.activate_subscription(client_user.id, SubscriptionPlan.STARTER)
    await db_session.commit()

    with pytest.raises(ActiveSubscriptionExistsError):
        await service.activate_subscription(client_user.id, SubscriptionPlan.GROWTH)

    assert len(fake_gateway.charges) == 1
    assert await count_rows(db_session, Subscription) == 1


@pytest.mark.asyncio
async def test_write_failure_refunds_charge(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """If the records cannot be written after charging, the charge is refunded and nothing persists."""
    user_id = client_user.id
    service = ActivationService(db_session, gateway=fake_gateway)
    service.invoices.record_paid_subscription_invoice = AsyncMock(side_effect=RuntimeError("write failed"))

    with pytest.raises(RuntimeError):
        await service.activate_subscription(user_id, SubscriptionPlan.STARTER)

    payment_intent_id = fake_gateway.charges[0]["id"]
    assert len(fake_gateway.refunds) == 1
    assert fake_gateway.refunds[0]["payment_intent_id"] == payment_intent_id
    assert fake_gateway.refunds[0]["idempotency_key"] == f"refund-{payment_intent_id}"
    await assert_nothing_written(db_session)

    user = await db_session.get(User, user_id)
    assert user is not None


@pytest.mark.asyncio
async def test_commit_failure_refunds_charge(
    db_session: AsyncSession,
    client_user: User,
    fake_gateway: FakePaymentGateway,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A commit that fails after charging is compensated like any other write failure."""
    service = ActivationService(db_session, gateway=fake_gateway)
    monkeypatch.setattr(
        AsyncSession, "commit", AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("connection lost")))
    )

    with pytest.raises(OperationalError):
        await service.activate_subscription(client_user.id, SubscriptionPlan.STARTER)
    monkeypatch.undo()

    payment_intent_id = fake_gateway.charges[0]["id"]
    assert fake_gateway.refunds == [
        {
            "id": fake_gateway.refunds[0]["id"],
            "payment_intent_id": payment_intent_id,
            "idempotency_key": f"refund-{payment_intent_id}",
        }
    ]
    await assert_nothing_written(db_session)


@pytest.mark.asyncio
async def test_refund_failure_keeps_write_error(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """When the refund itself fails, the caller still sees the original write error."""
    service = ActivationService(db_session, gateway=fake_gateway)
    service.invoices.record_paid_subscription_invoice = AsyncMock(side_effect=RuntimeError("write failed"))
    fake_gateway.refund_charge = AsyncMock(side_effect=stripe.StripeError("refund declined"))

    with pytest.raises(RuntimeError, match="write failed"):
        await service.activate_subscription(client_user.id, SubscriptionPlan.STARTER)

    fake_gateway.refund_charge.assert_awaited_once()
    await assert_nothing_written(db_session)


@pytest.mark.asyncio
async def test_missing_user(db_session: AsyncSession, fake_gateway: FakePaymentGateway) -> None:
    with pytest.raises(UserNotFoundError):
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            uuid4(), SubscriptionPlan.STARTER
        )


@pytest.mark.asyncio
async def test_missing_customer(
    db_session: AsyncSession, bare_user: User, fake_gateway: FakePaymentGateway
) -> None:
    with pytest.raises(NoCustomerReferenceError):
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            bare_user.id, SubscriptionPlan.STARTER
        )

    assert fake_gateway.charges == []


@pytest.mark.asyncio
async def test_missing_payment_method(db_session: AsyncSession, fake_gateway: FakePaymentGateway) -> None:
    user = User(**UserFactory.create())
    db_session.add(user)
    await db_session.commit()

    with pytest.raises(NoPaymentMethodError):
        await ActivationService(db_session, gateway=fake_gateway).activate_subscription(
            user.id, SubscriptionPlan.STARTER
        )

    assert fake_gateway.charges == []


@pytest.mark.asyncio
async def test_idempotency_keys(
    db_session: AsyncSession, client_user: User, fake_gateway: FakePaymentGateway
) -> None:
    """Generated keys name the user and plan; explicit keys pass through."""
    user_id = client_user.id
    service = ActivationService(db_session, gateway=fake_gateway)

    await service.activate_subscription(user_id, SubscriptionPlan.STARTER)
    assert fake_gateway.charges[0]["idempotency_key"].startswith(f"activation-{user_id}-STARTER-")

    await service.subscriptions.cancel_subscription(user_id)
    await service.activate_subscription(user_id, SubscriptionPlan.GROWTH, idempotency_key="retry-42")
    assert fake_gateway.charges[1]["idempotency_key"] == "retry-42"
