"""Plan catalog: static pricing and hour allocation per plan."""
from types import MappingProxyType
from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from agency_billing.errors import UnknownPlanError
from agency_billing.models.subscription import BillingInterval, SubscriptionPlan


class PlanDefinition(BaseModel):
    """Immutable pricing row for one plan."""

    model_config = ConfigDict(frozen=True)

    plan: SubscriptionPlan
    monthly_price: int = Field(..., ge=0, description="Monthly price in minor units")
    yearly_price: int = Field(..., ge=0, description="Yearly price in minor units")
    monthly_hours: int = Field(..., ge=0, description="Hours allocated each month")
    requires_custom_price: bool = Field(
        default=False,
        description="Sentinel rows that can only be activated with a negotiated price",
    )


class PlanCatalog:
    """
    Read-only plan lookup.

    Built once and handed to the services that price subscriptions, so tests and
    environments can swap pricing without touching module state.
    """

    def __init__(self, plans: Iterable[PlanDefinition]):
        """Initialize catalog from plan definitions."""
        self._plans: Mapping[SubscriptionPlan, PlanDefinition] = MappingProxyType(
            {definition.plan: definition for definition in plans}
        )

    def get_plan_config(self, plan: SubscriptionPlan | str) -> PlanDefinition:
        """
        Look up a plan.

        Args:
            plan: Plan enum member or its name

        Returns:
            Plan definition

        Raises:
            UnknownPlanError: If the plan is not in the catalog
        """
        key = plan
        if isinstance(plan, str):
            try:
                key = SubscriptionPlan[plan.upper()]
            except KeyError:
                raise UnknownPlanError(f"Unknown plan: {plan}") from None

        definition = self._plans.get(key)
        if definition is None:
            raise UnknownPlanError(f"Unknown plan: {getattr(key, 'value', key)}")
        return definition

    def price_for(self, plan: SubscriptionPlan | str, interval: BillingInterval) -> int:
        """Price of one billing interval in minor units."""
        definition = self.get_plan_config(plan)
        if interval == BillingInterval.YEARLY:
            return definition.yearly_price
        return definition.monthly_price

    def plans(self) -> list[PlanDefinition]:
        """All plan definitions in declaration order."""
        return list(self._plans.values())


def default_plan_catalog() -> PlanCatalog:
    """Embedded plan table."""
    return PlanCatalog(
        [
            PlanDefinition(
                plan=SubscriptionPlan.STARTER,
                monthly_price=125000,
                yearly_price=1250000,
                monthly_hours=200,
            ),
            PlanDefinition(
                plan=SubscriptionPlan.GROWTH,
                monthly_price=250000,
                yearly_price=2500000,
                monthly_hours=450,
            ),
            PlanDefinition(
                plan=SubscriptionPlan.ENTERPRISE,
                monthly_price=0,
                yearly_price=0,
                monthly_hours=0,
                requires_custom_price=True,
            ),
            PlanDefinition(
                plan=SubscriptionPlan.CUSTOM,
                monthly_price=0,
                yearly_price=0,
                monthly_hours=0,
                requires_custom_price=True,
            ),
        ]
    )
