"""Hours balance ledger: per-period allowance and usage tracking."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.errors import BalanceNotFoundError, HoursLimitExceededError, NoActiveBalanceError
from agency_billing.metrics import hours_logged_total, hours_purchased_total
from agency_billing.models.hours_balance import HOURS_PRECISION, HoursBalance
from agency_billing.models.notification import NotificationType
from agency_billing.models.subscription import Subscription
from agency_billing.models.time_log import Project, TimeLog
from agency_billing.schemas.hours_balance import ProjectUsage
from agency_billing.services.ledger_policies import (
    RolloverPolicy,
    UsageDecision,
    UsagePolicy,
    rollover_policy_from_settings,
    usage_policy_from_settings,
)
from agency_billing.services.notification_service import NotificationService
from agency_billing.utils.dates import add_months, end_of_month, start_of_month, utcnow

logger = structlog.get_logger(__name__)


class HoursBalanceService:
    """
    Ledger of allocated versus used hours.

    Counters only ever accumulate. Whether usage past the allowance is accepted
    is decided by the injected usage policy; what survives a period reset is
    decided by the rollover policy.
    """

    def __init__(
        self,
        db: AsyncSession,
        usage_policy: UsagePolicy | None = None,
        rollover_policy: RolloverPolicy | None = None,
        notifications: NotificationService | None = None,
    ):
        """Initialize hours balance service with database session and policies."""
        self.db = db
        self.usage_policy = usage_policy or usage_policy_from_settings()
        self.rollover_policy = rollover_policy or rollover_policy_from_settings()
        self.notifications = notifications or NotificationService(db)

    async def get_current_balance(self, user_id: UUID) -> HoursBalance | None:
        """
        Get the balance whose period contains now.

        Args:
            user_id: User UUID

        Returns:
            HoursBalance or None for users without a metered period
        """
        now = utcnow()
        result = await self.db.execute(
            select(HoursBalance)
            .where(
                HoursBalance.user_id == user_id,
                HoursBalance.period_start <= now,
                HoursBalance.period_end >= now,
            )
            .order_by(HoursBalance.period_start.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_balance_by_id(self, balance_id: UUID) -> HoursBalance | None:
        """Get balance by ID."""
        result = await self.db.execute(select(HoursBalance).where(HoursBalance.id == balance_id))
        return result.scalar_one_or_none()

    async def create_monthly_balance(
        self,
        user_id: UUID,
        subscription_id: UUID | None,
        monthly_hours: int,
        start_date: datetime | None = None,
    ) -> HoursBalance:
        """
        Open a balance for the calendar month containing ``start_date``.

        Args:
            user_id: User UUID
            subscription_id: Subscription funding the hours
            monthly_hours: Hours allocated for the month
            start_date: Any instant in the target month (defaults to now)

        Returns:
            Created balance
        """
        anchor = start_date or utcnow()
        return await self.create_period_balance(
            user_id=user_id,
            subscription_id=subscription_id,
            monthly_hours=monthly_hours,
            period_start=start_of_month(anchor),
            period_end=end_of_month(anchor),
        )

    async def create_period_balance(
        self,
        user_id: UUID,
        subscription_id: UUID | None,
        monthly_hours: int,
        period_start: datetime,
        period_end: datetime,
        rollover_hours: Decimal = Decimal("0"),
    ) -> HoursBalance:
        """Open a balance for an explicit period."""
        balance = HoursBalance(
            user_id=user_id,
            subscription_id=subscription_id,
            period_start=period_start,
            period_end=period_end,
            allocated_hours=monthly_hours,
            bonus_hours=0,
            extra_purchased_hours=0,
            rollover_hours=rollover_hours,
            minutes_used=0,
            hours_used=Decimal("0"),
        )

        self.db.add(balance)
        await self.db.flush()
        await self.db.refresh(balance)

        logger.info(
            "hours_balance_created",
            balance_id=str(balance.id),
            user_id=str(user_id),
            allocated_hours=monthly_hours,
            rollover_hours=str(rollover_hours),
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )
        return balance

    async def add_purchased_hours(self, user_id: UUID, hours: int) -> HoursBalance:
        """
        Credit extra hours to the earliest period that has not ended.

        Raises:
            NoActiveBalanceError: If the user has no open balance
        """
        result = await self.db.execute(
            select(HoursBalance)
            .where(HoursBalance.user_id == user_id, HoursBalance.period_end >= utcnow())
            .order_by(HoursBalance.period_start.asc())
            .limit(1)
        )
        balance = result.scalar_one_or_none()
        if not balance:
            raise NoActiveBalanceError()

        balance.extra_purchased_hours = (balance.extra_purchased_hours or 0) + hours
        await self.db.flush()
        await self.db.refresh(balance)

        hours_purchased_total.inc(hours)
        logger.info(
            "purchased_hours_added",
            balance_id=str(balance.id),
            user_id=str(user_id),
            hours=hours,
            extra_purchased_hours=balance.extra_purchased_hours,
        )
        return balance

    async def update_usage(self, balance_id: UUID, minutes_used: int) -> HoursBalance:
        """
        Record logged minutes against a balance.

        Args:
            balance_id: Balance UUID
            minutes_used: Minutes to add

        Returns:
            Updated balance

        Raises:
            BalanceNotFoundError: If the balance does not exist
            HoursLimitExceededError: If the usage policy rejects the entry
        """
        balance = await self.get_balance_by_id(balance_id)
        if not balance:
            raise BalanceNotFoundError(f"Hours balance {balance_id} not found")

        hours = Decimal(minutes_used) / Decimal(60)
        decision = self.usage_policy(balance, hours)
        if decision == UsageDecision.REJECT:
            logger.warning(
                "hours_usage_rejected",
                balance_id=str(balance_id),
                minutes=minutes_used,
                hours_remaining=str(balance.hours_remaining),
            )
            raise HoursLimitExceededError(
                f"Logging {hours.quantize(HOURS_PRECISION)} hours exceeds the "
                f"{balance.hours_remaining} hours remaining"
            )

        balance.minutes_used = (balance.minutes_used or 0) + minutes_used
        balance.hours_used = (Decimal(balance.minutes_used) / Decimal(60)).quantize(HOURS_PRECISION)
        await self.db.flush()
        await self.db.refresh(balance)

        hours_logged_total.inc(float(hours))
        logger.info(
            "hours_usage_recorded",
            balance_id=str(balance_id),
            minutes=minutes_used,
            minutes_used=balance.minutes_used,
            hours_used=str(balance.hours_used),
        )

        if decision == UsageDecision.WARN:
            await self.notifications.notify(
                user_id=balance.user_id,
                type=NotificationType.WARNING,
                title="Low Hours Balance",
                message=f"You have {balance.hours_remaining.quantize(Decimal('0.01'))} hours remaining this period",
                action_url="/billing",
                action_label="Buy Hours",
            )

        return balance

    async def reset_monthly_balance(self, user_id: UUID) -> HoursBalance | None:
        """
        Open the next calendar month's balance from the current one.

        Allocation comes from the linked subscription; carried hours come from
        the rollover policy. An existing next-period row is returned as is.
        After a mid-month activation the new row starts on the first of the
        next month and overlaps the activation period until it ends; the
        latest-starting row is then the current one.

        Returns:
            Next period balance, or None if there is no current balance or it
            has no subscription
        """
        current = await self.get_current_balance(user_id)
        if not current or not current.subscription_id:
            return None

        subscription = await self.db.get(Subscription, current.subscription_id)
        if not subscription:
            return None

        next_start = add_months(start_of_month(current.period_start), 1)
        result = await self.db.execute(
            select(HoursBalance).where(
                HoursBalance.user_id == user_id,
                HoursBalance.period_start == next_start,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            logger.info("hours_balance_reset_skipped", user_id=str(user_id), balance_id=str(existing.id))
            return existing

        rollover = Decimal(self.rollover_policy(current)).quantize(HOURS_PRECISION)
        return await self.create_period_balance(
            user_id=user_id,
            subscription_id=subscription.id,
            monthly_hours=subscription.monthly_hours,
            period_start=next_start,
            period_end=end_of_month(next_start),
            rollover_hours=rollover,
        )

    async def get_balance_history(self, user_id: UUID, limit: int = 12) -> list[HoursBalance]:
        """List balances, newest period first."""
        result = await self.db.execute(
            select(HoursBalance)
            .where(HoursBalance.user_id == user_id)
            .order_by(HoursBalance.period_start.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_usage_by_project(
        self, user_id: UUID, start_date: datetime, end_date: datetime
    ) -> list[ProjectUsage]:
        """
        Sum a client's logged minutes per project inside a date range.

        Args:
            user_id: Client UUID
            start_date: Inclusive range start
            end_date: Inclusive range end

        Returns:
            One row per project with time logged, largest first
        """
        total_minutes = func.sum(TimeLog.duration_minutes)
        result = await self.db.execute(
            select(Project.id, Project.title, Project.project_number, total_minutes.label("total_minutes"))
            .join(TimeLog, TimeLog.project_id == Project.id)
            .where(
                TimeLog.client_id == user_id,
                TimeLog.start_time >= start_date,
                TimeLog.start_time <= end_date,
            )
            .group_by(Project.id, Project.title, Project.project_number)
            .order_by(total_minutes.desc())
        )

        return [
            ProjectUsage(
                project_id=row.id,
                project_title=row.title,
                project_number=row.project_number,
                total_minutes=int(row.total_minutes or 0),
                total_hours=(Decimal(int(row.total_minutes or 0)) / Decimal(60)).quantize(Decimal("0.1")),
            )
            for row in result.all()
        ]
