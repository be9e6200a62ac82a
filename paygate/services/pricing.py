"""
Pricing - fixed plan/period price table and subscription period arithmetic.
"""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from paygate.exceptions import PaymentValidationError
from paygate.models.api import BillingPeriod, PlanType

# Amounts in grosze
PRICE_TABLE: dict[PlanType, dict[BillingPeriod, int]] = {
    PlanType.STARTER: {BillingPeriod.MONTHLY: 9900, BillingPeriod.YEARLY: 99000},
    PlanType.PROFESSIONAL: {BillingPeriod.MONTHLY: 19900, BillingPeriod.YEARLY: 199000},
}


def parse_selection(plan: str, period: str) -> tuple[PlanType, BillingPeriod]:
    """
    Parse a user-supplied plan/period pair.

    Raises:
        PaymentValidationError: plan or period is not offered
    """
    try:
        return PlanType(plan), BillingPeriod(period)
    except ValueError as exc:
        raise PaymentValidationError("Invalid plan or billing period") from exc


def get_price(plan: PlanType, period: BillingPeriod) -> int:
    """Price of a plan/period selection in grosze."""
    try:
        return PRICE_TABLE[plan][period]
    except KeyError as exc:
        raise PaymentValidationError("Invalid plan or billing period") from exc


def compute_period_end(now: datetime, period: BillingPeriod) -> datetime:
    """
    End of a subscription period starting at now.

    Calendar arithmetic: Jan 31 + 1 month is Feb 28/29, Feb 29 + 1 year is Feb 28.
    """
    if period == BillingPeriod.YEARLY:
        return now + relativedelta(years=1)
    return now + relativedelta(months=1)
