"""Client hours balance API endpoints."""
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.api.deps import current_user_id, get_current_user, get_db
from agency_billing.schemas.hours_balance import HoursBalance, ProjectUsage
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.utils.dates import end_of_month, start_of_month, utcnow

router = APIRouter(prefix="/hours", tags=["Hours"])


@router.get("/balance", response_model=HoursBalance | None)
async def get_current_balance(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> HoursBalance | None:
    """Balance for the current period, or null for unmetered clients."""
    return await HoursBalanceService(db).get_current_balance(current_user_id(current_user))


@router.get("/history", response_model=list[HoursBalance])
async def get_balance_history(
    limit: int = Query(12, ge=1, le=120, description="Number of periods"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[HoursBalance]:
    """Past balances, newest period first."""
    return await HoursBalanceService(db).get_balance_history(current_user_id(current_user), limit)


@router.get("/usage", response_model=list[ProjectUsage])
async def get_usage_by_project(
    start_date: datetime | None = Query(None, description="Range start (defaults to start of this month)"),
    end_date: datetime | None = Query(None, description="Range end (defaults to end of this month)"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> list[ProjectUsage]:
    """Logged time grouped by project."""
    now = utcnow()
    return await HoursBalanceService(db).get_usage_by_project(
        current_user_id(current_user),
        start_date or start_of_month(now),
        end_date or end_of_month(now),
    )
