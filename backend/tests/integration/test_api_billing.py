"""API tests for the client billing, hours, payment method and notification endpoints."""
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.models.subscription import BillingInterval, SubscriptionPlan
from agency_billing.models.user import User
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.invoice_service import InvoiceService
from agency_billing.services.subscription_service import SubscriptionService

from utils.fakes import FakePaymentGateway


async def subscribe(db_session: AsyncSession, user_id):
    subscription = await SubscriptionService(db_session).create_subscription(
        user_id=user_id,
        plan=SubscriptionPlan.STARTER,
        billing_interval=BillingInterval.MONTHLY,
        price_amount=125000,
        monthly_hours=200,
    )
    await db_session.commit()
    return subscription


@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient) -> None:
    response = await async_client.get("/v1/billing/summary")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rejects_invalid_token(async_client: AsyncClient) -> None:
    response = await async_client.get("/v1/billing/summary", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_purchase_extra_hours_and_list(
    async_client: AsyncClient, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)

    response = await async_client.post("/v1/billing/extra-hours", json={"hours": 3}, headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["transaction_type"] == "ADDITIONAL_HOURS"
    assert data["status"] == "UNPAID"
    assert data["total"] == 22500
    assert data["hours_purchased"] == 3

    response = await async_client.get("/v1/billing/invoices", headers=headers)
    assert [invoice["id"] for invoice in response.json()] == [data["id"]]

    response = await async_client.get("/v1/billing/invoices?status=PAID", headers=headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_summary_in_major_units(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    subscription = await subscribe(db_session, client_user.id)
    service = InvoiceService(db_session)
    invoice = await service.create_subscription_invoice(subscription.id)
    await service.mark_as_paid(invoice.id)
    await db_session.commit()

    response = await async_client.get("/v1/billing/summary", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total_paid"] == "1250.00"
    assert data["total_pending"] == "0.00"
    assert data["total_failed"] == 0
    assert len(data["recent_invoices"]) == 1


@pytest.mark.asyncio
async def test_invoice_detail_and_document(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    invoice = await InvoiceService(db_session).create_extra_hours_invoice(client_user.id, 2)
    await db_session.commit()

    response = await async_client.get(f"/v1/billing/invoices/{invoice.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["invoice_number"] == invoice.invoice_number

    response = await async_client.get(f"/v1/billing/invoices/{invoice.id}/document", headers=headers)
    assert response.status_code == 200
    document = response.json()
    assert document["formatted_amount"] == "$150.00"
    assert document["items"] == [{"description": "2 extra hours @ $75.00/hr", "amount": 15000}]


@pytest.mark.asyncio
async def test_other_clients_invoice_is_forbidden(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, manager_user: User, auth_headers
) -> None:
    headers = auth_headers(manager_user, role="CLIENT")
    invoice = await InvoiceService(db_session).create_extra_hours_invoice(client_user.id, 1)
    invoice_id = invoice.id
    await db_session.commit()

    response = await async_client.get(f"/v1/billing/invoices/{invoice_id}", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_cancel_invoice(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    invoice = await InvoiceService(db_session).create_extra_hours_invoice(client_user.id, 1)
    await db_session.commit()

    response = await async_client.post(f"/v1/billing/invoices/{invoice.id}/cancel", headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


@pytest.mark.asyncio
async def test_payment_history(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    service = InvoiceService(db_session)
    paid = await service.create_extra_hours_invoice(client_user.id, 1)
    await service.create_extra_hours_invoice(client_user.id, 2)
    await service.mark_as_paid(paid.id)
    await db_session.commit()

    response = await async_client.get("/v1/billing/payments", headers=headers)

    assert response.status_code == 200
    assert [invoice["id"] for invoice in response.json()] == [str(paid.id)]


@pytest.mark.asyncio
async def test_subscription_endpoints(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    await subscribe(db_session, client_user.id)

    response = await async_client.get("/v1/billing/subscription", headers=headers)
    assert response.status_code == 200
    assert response.json()["plan"] == "STARTER"

    response = await async_client.patch(
        "/v1/billing/subscription", json={"plan": "GROWTH", "monthly_hours": 400}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["plan"] == "GROWTH"
    assert response.json()["monthly_hours"] == 400

    response = await async_client.post("/v1/billing/subscription/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    response = await async_client.get("/v1/billing/subscriptions", headers=headers)
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_subscription_patch_rejects_unknown_fields(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    await subscribe(db_session, client_user.id)

    response = await async_client.patch("/v1/billing/subscription", json={"status": "PAUSED"}, headers=headers)

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_hours_endpoints(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)

    response = await async_client.get("/v1/hours/balance", headers=headers)
    assert response.status_code == 200
    assert response.json() is None

    service = HoursBalanceService(db_session)
    balance = await service.create_monthly_balance(client_user.id, None, 200)
    await service.update_usage(balance.id, 360)
    await db_session.commit()

    response = await async_client.get("/v1/hours/balance", headers=headers)
    data = response.json()
    assert data["id"] == str(balance.id)
    assert Decimal(data["hours_remaining"]) == Decimal("194")

    response = await async_client.get("/v1/hours/history", headers=headers)
    assert len(response.json()) == 1

    response = await async_client.get("/v1/hours/usage", headers=headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_payment_method_endpoints(
    async_client: AsyncClient, client_user: User, fake_gateway: FakePaymentGateway, auth_headers
) -> None:
    headers = auth_headers(client_user)

    response = await async_client.post("/v1/payment-methods/setup-intent", headers=headers)
    assert response.status_code == 201
    setup_intent_id = next(iter(fake_gateway.setup_intents))
    assert response.json()["client_secret"].startswith(setup_intent_id)

    response = await async_client.post(
        "/v1/payment-methods/confirm", json={"setup_intent_id": setup_intent_id}, headers=headers
    )
    assert response.status_code == 201
    saved = response.json()
    assert saved["is_default"] is True
    assert saved["card_last4"] == "4242"

    response = await async_client.get("/v1/payment-methods", headers=headers)
    methods = response.json()
    assert len(methods) == 2
    assert methods[0]["id"] == saved["id"]

    other_id = methods[1]["id"]
    response = await async_client.post(f"/v1/payment-methods/{other_id}/default", headers=headers)
    assert response.json()["is_default"] is True

    response = await async_client.delete(f"/v1/payment-methods/{saved['id']}", headers=headers)
    assert response.status_code == 204
    assert len(fake_gateway.detached) == 1


@pytest.mark.asyncio
async def test_notification_endpoints(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    await InvoiceService(db_session).create_extra_hours_invoice(client_user.id, 1)
    await db_session.commit()

    response = await async_client.get("/v1/notifications/unread-count", headers=headers)
    assert response.json() == {"unread": 1}

    response = await async_client.get("/v1/notifications", headers=headers)
    notification = response.json()[0]
    assert notification["title"] == "Extra Hours Invoice"
    assert notification["action_label"] == "Pay Now"

    response = await async_client.post(f"/v1/notifications/{notification['id']}/read", headers=headers)
    assert response.json()["is_read"] is True

    response = await async_client.post("/v1/notifications/read-all", headers=headers)
    assert response.json() == {"unread": 0}
