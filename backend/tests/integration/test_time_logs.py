"""Integration tests for time logging against client hours."""
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.errors import HoursLimitExceededError, UnauthorizedError
from agency_billing.models.time_log import Project, TimeLog
from agency_billing.models.user import User
from agency_billing.schemas.time_log import TimeLogCreate
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.ledger_policies import forfeit_unused, reject_overage
from agency_billing.services.time_log_service import TimeLogService
from agency_billing.utils.dates import utcnow

from utils.factories import TimeLogFactory


async def create_project(db_session: AsyncSession, client_id, number: str = "PRJ-100") -> Project:
    project = Project(client_id=client_id, title="Brand refresh", project_number=number)
    db_session.add(project)
    await db_session.flush()
    return project


def time_entry(project: Project, talent: User, **overrides) -> TimeLogCreate:
    data = TimeLogFactory.create(
        {"project_id": project.id, "client_id": project.client_id, "user_id": talent.id, **overrides}
    )
    return TimeLogCreate(**data)


@pytest.mark.asyncio
async def test_log_time_draws_down_balance(
    db_session: AsyncSession, client_user: User, manager_user: User, hours_service: HoursBalanceService
) -> None:
    balance = await hours_service.create_monthly_balance(client_user.id, None, 200)
    project = await create_project(db_session, client_user.id)
    service = TimeLogService(db_session, hours_balances=hours_service)

    time_log = await service.log_time(time_entry(project, manager_user, duration_minutes=90))

    assert time_log.duration_minutes == 90
    refreshed = await hours_service.get_balance_by_id(balance.id)
    assert refreshed.hours_used == Decimal("1.5")


@pytest.mark.asyncio
async def test_log_time_unmetered_client(
    db_session: AsyncSession, client_user: User, manager_user: User, hours_service: HoursBalanceService
) -> None:
    """Without a current balance the log is kept and nothing is drawn."""
    project = await create_project(db_session, client_user.id)
    service = TimeLogService(db_session, hours_balances=hours_service)

    await service.log_time(time_entry(project, manager_user, duration_minutes=60))

    assert await db_session.scalar(select(func.count()).select_from(TimeLog)) == 1


@pytest.mark.asyncio
async def test_log_time_wrong_client(
    db_session: AsyncSession, client_user: User, manager_user: User, hours_service: HoursBalanceService
) -> None:
    project = await create_project(db_session, client_user.id)
    service = TimeLogService(db_session, hours_balances=hours_service)
    entry = time_entry(project, manager_user, client_id=manager_user.id)

    with pytest.raises(UnauthorizedError):
        await service.log_time(entry)


@pytest.mark.asyncio
async def test_rejected_entry_leaves_no_log(
    db_session: AsyncSession, client_user: User, manager_user: User
) -> None:
    """Under a hard cap, time past the allowance is refused outright."""
    ledger = HoursBalanceService(db_session, usage_policy=reject_overage, rollover_policy=forfeit_unused)
    await ledger.create_monthly_balance(client_user.id, None, 1)
    project = await create_project(db_session, client_user.id)
    service = TimeLogService(db_session, hours_balances=ledger)

    with pytest.raises(HoursLimitExceededError):
        await service.log_time(time_entry(project, manager_user, duration_minutes=120))

    assert await db_session.scalar(select(func.count()).select_from(TimeLog)) == 0


@pytest.mark.asyncio
async def test_client_time_logs_recent_first(
    db_session: AsyncSession, client_user: User, manager_user: User, hours_service: HoursBalanceService
) -> None:
    project = await create_project(db_session, client_user.id)
    service = TimeLogService(db_session, hours_balances=hours_service)
    now = utcnow()
    for days_back in (3, 1, 2):
        await service.log_time(time_entry(project, manager_user, start_time=now - timedelta(days=days_back)))

    logs = await service.get_client_time_logs(client_user.id)
    starts = [time_log.start_time for time_log in logs]
    assert starts == sorted(starts, reverse=True)
    assert len(await service.get_client_time_logs(client_user.id, limit=2)) == 2
