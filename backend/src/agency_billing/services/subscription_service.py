"""Subscription service for business logic."""
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agency_billing.config import settings
from agency_billing.errors import (
    ActiveSubscriptionExistsError,
    InvalidStateTransitionError,
    NoActiveSubscriptionError,
    SubscriptionNotFoundError,
)
from agency_billing.metrics import subscriptions_cancelled_total, subscriptions_created_total
from agency_billing.models.notification import NotificationType
from agency_billing.models.subscription import (
    BillingInterval,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from agency_billing.schemas.subscription import SubscriptionUpdate
from agency_billing.services.notification_service import NotificationService
from agency_billing.services.plan_catalog import PlanCatalog, default_plan_catalog
from agency_billing.utils.dates import add_months, utcnow

logger = structlog.get_logger(__name__)

INTERVAL_MONTHS = {
    BillingInterval.MONTHLY: 1,
    BillingInterval.YEARLY: 12,
}


class SubscriptionService:
    """Service layer for subscription lifecycle operations."""

    def __init__(
        self,
        db: AsyncSession,
        catalog: PlanCatalog | None = None,
        notifications: NotificationService | None = None,
    ):
        """Initialize subscription service with database session."""
        self.db = db
        self.catalog = catalog or default_plan_catalog()
        self.notifications = notifications or NotificationService(db)

    def get_plan_config(self, plan: SubscriptionPlan | str):
        """Look up plan pricing in the configured catalog."""
        return self.catalog.get_plan_config(plan)

    async def create_subscription(
        self,
        user_id: UUID,
        plan: SubscriptionPlan,
        billing_interval: BillingInterval,
        price_amount: int,
        monthly_hours: int,
    ) -> Subscription:
        """
        Create an ACTIVE subscription starting now.

        The billing period is [now, now + 1 interval) and the next billing date
        is the end of that period.

        Args:
            user_id: Owning user
            plan: Catalog plan
            billing_interval: MONTHLY or YEARLY
            price_amount: Price per interval in minor units
            monthly_hours: Hours allocated each month

        Returns:
            Created subscription

        Raises:
            ActiveSubscriptionExistsError: If the user already has an ACTIVE subscription
        """
        existing = await self.get_active_subscription(user_id)
        if existing:
            raise ActiveSubscriptionExistsError(
                f"User {user_id} already has active subscription {existing.id}"
            )

        now = utcnow()
        period_end = add_months(now, INTERVAL_MONTHS[billing_interval])

        subscription = Subscription(
            user_id=user_id,
            plan=plan,
            status=SubscriptionStatus.ACTIVE,
            billing_interval=billing_interval,
            price_amount=price_amount,
            currency=settings.default_currency,
            monthly_hours=monthly_hours,
            start_date=now,
            current_period_start=now,
            current_period_end=period_end,
            next_billing_date=period_end,
        )

        self.db.add(subscription)
        await self._flush_guarding_active(user_id)
        await self.db.refresh(subscription)

        subscriptions_created_total.labels(plan=plan.value, billing_interval=billing_interval.value).inc()
        logger.info(
            "subscription_created",
            subscription_id=str(subscription.id),
            user_id=str(user_id),
            plan=plan.value,
            price_amount=price_amount,
            monthly_hours=monthly_hours,
        )

        return subscription

    async def get_active_subscription(self, user_id: UUID) -> Subscription | None:
        """
        Get the user's most recently created ACTIVE subscription.

        Args:
            user_id: User UUID

        Returns:
            Subscription or None
        """
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_user_subscriptions(
        self, user_id: UUID, status: SubscriptionStatus | None = None
    ) -> list[Subscription]:
        """List a user's subscriptions, newest first, optionally by status."""
        query = select(Subscription).where(Subscription.user_id == user_id)
        if status:
            query = query.where(Subscription.status == status)
        query = query.order_by(Subscription.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_subscription_by_id(self, subscription_id: UUID) -> Subscription | None:
        """
        Get subscription by ID.

        Args:
            subscription_id: Subscription UUID

        Returns:
            Subscription or None if not found
        """
        result = await self.db.execute(
            select(Subscription).where(Subscription.id == subscription_id)
        )
        return result.scalar_one_or_none()

    async def update_subscription(self, user_id: UUID, update_data: SubscriptionUpdate) -> Subscription:
        """
        Apply a partial update to the user's active subscription.

        The billing period is left untouched.

        Args:
            user_id: User UUID
            update_data: Fields to change

        Returns:
            Updated subscription

        Raises:
            NoActiveSubscriptionError: If the user has no ACTIVE subscription
        """
        subscription = await self.get_active_subscription(user_id)
        if not subscription:
            raise NoActiveSubscriptionError()

        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(subscription, field, value)

        await self.db.flush()
        await self.db.refresh(subscription)

        logger.info(
            "subscription_updated",
            subscription_id=str(subscription.id),
            fields=sorted(changes),
        )
        return subscription

    async def cancel_subscription(self, user_id: UUID) -> Subscription:
        """
        Cancel the user's active subscription immediately.

        Args:
            user_id: User UUID

        Returns:
            Cancelled subscription

        Raises:
            NoActiveSubscriptionError: If there is nothing to cancel
        """
        subscription = await self.get_active_subscription(user_id)
        if not subscription:
            raise NoActiveSubscriptionError("No active subscription to cancel")

        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = utcnow()
        await self.db.flush()
        await self.db.refresh(subscription)

        await self.notifications.notify(
            user_id=user_id,
            type=NotificationType.WARNING,
            title="Subscription Cancelled",
            message="Your subscription has been cancelled",
            action_url="/billing",
        )

        subscriptions_cancelled_total.labels(plan=subscription.plan.value).inc()
        logger.info("subscription_cancelled", subscription_id=str(subscription.id), user_id=str(user_id))
        return subscription

    async def pause_subscription(self, subscription_id: UUID) -> Subscription:
        """
        Pause a subscription.

        Raises:
            SubscriptionNotFoundError: If subscription not found
            InvalidStateTransitionError: If the subscription is cancelled
        """
        subscription = await self._get_or_raise(subscription_id)
        if subscription.status == SubscriptionStatus.CANCELLED:
            raise InvalidStateTransitionError("Cannot pause a cancelled subscription")

        subscription.status = SubscriptionStatus.PAUSED
        await self.db.flush()
        await self.db.refresh(subscription)

        logger.info("subscription_paused", subscription_id=str(subscription_id))
        return subscription

    async def resume_subscription(self, subscription_id: UUID) -> Subscription:
        """
        Resume a subscription.

        The next billing date becomes one month from now, whatever the old
        period alignment was.

        Raises:
            SubscriptionNotFoundError: If subscription not found
            InvalidStateTransitionError: If the subscription is cancelled
            ActiveSubscriptionExistsError: If another subscription is already ACTIVE
        """
        subscription = await self._get_or_raise(subscription_id)
        if subscription.status == SubscriptionStatus.CANCELLED:
            raise InvalidStateTransitionError("Cannot resume a cancelled subscription")

        subscription.status = SubscriptionStatus.ACTIVE
        subscription.next_billing_date = add_months(utcnow(), 1)
        await self._flush_guarding_active(subscription.user_id)
        await self.db.refresh(subscription)

        logger.info(
            "subscription_resumed",
            subscription_id=str(subscription_id),
            next_billing_date=subscription.next_billing_date.isoformat(),
        )
        return subscription

    async def _get_or_raise(self, subscription_id: UUID) -> Subscription:
        subscription = await self.get_subscription_by_id(subscription_id)
        if not subscription:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
        return subscription

    async def _flush_guarding_active(self, user_id: UUID) -> None:
        """Flush, translating a one-active-per-user index violation."""
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise ActiveSubscriptionExistsError(
                f"User {user_id} already has an active subscription"
            ) from e
