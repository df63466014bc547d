"""Pluggable usage and rollover policies for the hours ledger."""
import enum
from decimal import Decimal
from typing import Callable, Optional

from agency_billing.config import settings
from agency_billing.models.hours_balance import HoursBalance


class UsageDecision(str, enum.Enum):
    """What the ledger should do with a usage entry."""

    ALLOW = "ALLOW"
    WARN = "WARN"
    REJECT = "REJECT"


UsagePolicy = Callable[[HoursBalance, Decimal], UsageDecision]
RolloverPolicy = Callable[[HoursBalance], Decimal]


def allow_overage(balance: HoursBalance, hours_to_add: Decimal) -> UsageDecision:
    """Record everything; the balance may go negative."""
    return UsageDecision.ALLOW


def reject_overage(balance: HoursBalance, hours_to_add: Decimal) -> UsageDecision:
    """Refuse usage that would push remaining hours below zero."""
    if balance.hours_remaining - hours_to_add < 0:
        return UsageDecision.REJECT
    return UsageDecision.ALLOW


def warn_below(threshold_percent: int) -> UsagePolicy:
    """
    Build a policy that records usage but flags balances running low.

    Args:
        threshold_percent: Remaining share of total available hours (0-100)
            under which a warning is raised

    Returns:
        Usage policy
    """
    threshold = Decimal(threshold_percent) / Decimal(100)

    def policy(balance: HoursBalance, hours_to_add: Decimal) -> UsageDecision:
        total = balance.total_available_hours
        if total <= 0:
            return UsageDecision.ALLOW
        remaining_after = balance.hours_remaining - hours_to_add
        if remaining_after < total * threshold:
            return UsageDecision.WARN
        return UsageDecision.ALLOW

    return policy


def forfeit_unused(previous: HoursBalance) -> Decimal:
    """Unused hours expire with the period."""
    return Decimal("0")


def carry_forward_unused(cap: Optional[int] = None) -> RolloverPolicy:
    """
    Build a policy that carries unused hours into the next period.

    Args:
        cap: Maximum hours carried over (no cap when None)

    Returns:
        Rollover policy
    """

    def policy(previous: HoursBalance) -> Decimal:
        unused = max(previous.hours_remaining, Decimal("0"))
        if cap is not None:
            unused = min(unused, Decimal(cap))
        return unused

    return policy


def usage_policy_from_settings() -> UsagePolicy:
    """Resolve the configured usage policy."""
    name = settings.usage_policy.lower()
    if name == "allow":
        return allow_overage
    if name == "warn":
        return warn_below(settings.low_balance_threshold_percent)
    if name == "reject":
        return reject_overage
    raise ValueError(f"Unknown usage policy: {settings.usage_policy}")


def rollover_policy_from_settings() -> RolloverPolicy:
    """Resolve the configured rollover policy."""
    name = settings.rollover_policy.lower()
    if name == "forfeit":
        return forfeit_unused
    if name == "carry_forward":
        return carry_forward_unused(settings.rollover_cap_hours)
    raise ValueError(f"Unknown rollover policy: {settings.rollover_policy}")
