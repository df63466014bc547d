"""Time log service: records talent time and meters it against client hours."""
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.errors import UnauthorizedError
from agency_billing.models.time_log import Project, TimeLog
from agency_billing.schemas.time_log import TimeLogCreate
from agency_billing.services.hours_balance_service import HoursBalanceService

logger = structlog.get_logger(__name__)


class TimeLogService:
    """Service layer for time logging."""

    def __init__(self, db: AsyncSession, hours_balances: HoursBalanceService | None = None):
        """Initialize time log service with database session."""
        self.db = db
        self.hours_balances = hours_balances or HoursBalanceService(db)

    async def log_time(self, data: TimeLogCreate) -> TimeLog:
        """
        Record time worked and draw it down from the client's current balance.

        Clients without a current balance are unmetered; the log is still kept.

        Raises:
            UnauthorizedError: If the project belongs to a different client
            HoursLimitExceededError: If the usage policy rejects the entry
        """
        project = await self.db.get(Project, data.project_id)
        if project and project.client_id != data.client_id:
            raise UnauthorizedError("Project does not belong to client")

        balance = await self.hours_balances.get_current_balance(data.client_id)
        if balance:
            # Usage first so a rejected entry leaves no log behind
            await self.hours_balances.update_usage(balance.id, data.duration_minutes)

        time_log = TimeLog(**data.model_dump())
        self.db.add(time_log)
        await self.db.flush()
        await self.db.refresh(time_log)

        logger.info(
            "time_logged",
            time_log_id=str(time_log.id),
            client_id=str(data.client_id),
            minutes=data.duration_minutes,
            metered=balance is not None,
        )
        return time_log

    async def get_client_time_logs(self, client_id: UUID, limit: int = 50) -> list[TimeLog]:
        """List a client's time logs, most recent work first."""
        result = await self.db.execute(
            select(TimeLog)
            .where(TimeLog.client_id == client_id)
            .order_by(TimeLog.start_time.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
