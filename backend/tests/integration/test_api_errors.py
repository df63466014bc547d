"""API tests for error bodies, request ids and health probes."""
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.models.user import User
from agency_billing.services.invoice_service import InvoiceService


@pytest.mark.asyncio
async def test_not_found_body(async_client: AsyncClient, client_user: User, auth_headers) -> None:
    response = await async_client.get(f"/v1/billing/invoices/{uuid4()}", headers=auth_headers(client_user))

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "invoice_not_found"
    assert body["kind"] == "not_found"
    assert body["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_paid_invoice_cannot_be_cancelled(
    async_client: AsyncClient, db_session: AsyncSession, client_user: User, auth_headers
) -> None:
    headers = auth_headers(client_user)
    service = InvoiceService(db_session)
    invoice = await service.create_extra_hours_invoice(client_user.id, 1)
    invoice_id = invoice.id
    await service.mark_as_paid(invoice_id)
    await db_session.commit()

    response = await async_client.post(f"/v1/billing/invoices/{invoice_id}/cancel", headers=headers)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "invoice_already_paid"
    assert body["remediation"] == "Cannot modify a paid invoice. Issue a credit adjustment instead."


@pytest.mark.asyncio
async def test_no_active_subscription(async_client: AsyncClient, client_user: User, auth_headers) -> None:
    response = await async_client.get("/v1/billing/subscription", headers=auth_headers(client_user))

    assert response.status_code == 400
    assert response.json()["error"] == "no_active_subscription"


@pytest.mark.asyncio
async def test_validation_error_body(async_client: AsyncClient, client_user: User, auth_headers) -> None:
    response = await async_client.post(
        "/v1/billing/extra-hours", json={"hours": 0}, headers=auth_headers(client_user)
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "ValidationError"
    assert body["details"][0]["field"] == "body.hours"


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client: AsyncClient) -> None:
    response = await async_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_checks_database(async_client: AsyncClient) -> None:
    response = await async_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"
