"""
Emergency fund goal helpers

Display-side calculations for the Emergency Fund bucket. Linked account
balances feed progress only; none of this affects rebalancing.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from allocation_planner.allocation.models import AllocationBucket, BucketType

DURATION_OPTIONS = (3, 6, 12)
DEFAULT_DURATION_MONTHS = 6


def target_for_duration(months: int, essential_spending: Decimal) -> Decimal:
    """Savings needed to cover `months` of essential spending"""
    if months not in DURATION_OPTIONS:
        raise ValueError(f"months must be one of {DURATION_OPTIONS}, got {months}")
    return essential_spending * months


def effective_duration_months(
    target_amount: Decimal | None, essential_spending: Decimal
) -> int:
    """
    Map a savings target to the nearest duration option

    <= 4 months maps to 3, <= 9 to 6, anything longer to 12. Falls back to
    6 months when there is no target or no essential spending to divide by.
    """
    if target_amount is None or essential_spending <= 0:
        return DEFAULT_DURATION_MONTHS

    months = int((target_amount / essential_spending).quantize(Decimal("1"), ROUND_HALF_UP))
    if months <= 4:
        return 3
    if months <= 9:
        return 6
    return 12


def bucket_duration_months(bucket: AllocationBucket, essential_spending: Decimal) -> int:
    if bucket.bucket_type is not BucketType.EMERGENCY_FUND:
        return DEFAULT_DURATION_MONTHS
    return effective_duration_months(bucket.target_amount, essential_spending)


def months_to_goal(
    target_amount: Decimal, current_balance: Decimal, monthly_contribution: Decimal
) -> int | None:
    """Whole months until the goal is met, None if met already or never"""
    shortfall = target_amount - current_balance
    if shortfall <= 0 or monthly_contribution <= 0:
        return None
    return int((shortfall / monthly_contribution).to_integral_value(ROUND_CEILING))


def goal_progress(target_amount: Decimal | None, current_balance: Decimal) -> float:
    """Fraction of the target reached, clamped to [0, 1]"""
    if not target_amount or target_amount <= 0:
        return 0.0
    return min(1.0, max(0.0, float(current_balance / target_amount)))
