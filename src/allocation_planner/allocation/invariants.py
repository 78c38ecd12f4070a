"""
Allocation Invariants - Plan validation

Pure functions deciding whether a plan may be confirmed. A plan is valid
when both checks pass:

1. Sum check: total allocated is within tolerance of 100% of income
2. Discretionary limit: discretionary spending is not above the hard limit

Degenerate income (zero, negative, NaN or infinite) never validates, but
never raises either; percentages simply come out as 0.
"""

from collections.abc import Sequence
from decimal import Decimal

from pydantic import BaseModel, Field

from allocation_planner.allocation.models import (
    AllocationBucket,
    BucketType,
    DiscretionaryStatus,
    DiscretionaryValidation,
    is_degenerate_income,
    percentage_of,
)
from allocation_planner.allocation.policy import AllocationPolicy, default_allocation_policy
from allocation_planner.kernel.errors import PlanNotConfirmable


def total_allocated(buckets: Sequence[AllocationBucket]) -> Decimal:
    return sum((b.allocated_amount for b in buckets), Decimal("0"))


def allocation_percentage(total: Decimal, monthly_income: Decimal) -> float:
    """Total as a percentage of income, 0 for degenerate income"""
    return percentage_of(total, monthly_income)


def check_allocation_sum(
    buckets: Sequence[AllocationBucket],
    monthly_income: Decimal,
    policy: AllocationPolicy = default_allocation_policy,
) -> bool:
    """True when the plan adds up to 100% of income within tolerance"""
    if is_degenerate_income(monthly_income):
        return False
    percent = allocation_percentage(total_allocated(buckets), monthly_income)
    return abs(percent - 100.0) < policy.sum_tolerance_percent


def evaluate_discretionary_spending(
    buckets: Sequence[AllocationBucket],
    monthly_income: Decimal,
    policy: AllocationPolicy = default_allocation_policy,
) -> DiscretionaryValidation:
    """
    Classify discretionary spending as VALID, WARNING or HARD_LIMIT

    WARNING starts at the warning threshold; HARD_LIMIT is anything above
    the hard limit (the hard limit itself is still allowed).
    """
    discretionary = [
        b for b in buckets if b.bucket_type is BucketType.DISCRETIONARY_SPENDING
    ]
    thresholds = {
        "warning_percent": policy.discretionary_warning_percent,
        "hard_limit_percent": policy.discretionary_hard_limit_percent,
    }
    if not discretionary or is_degenerate_income(monthly_income):
        return DiscretionaryValidation(status=DiscretionaryStatus.VALID, **thresholds)

    percent = percentage_of(total_allocated(discretionary), monthly_income)
    if percent > policy.discretionary_hard_limit_percent:
        status = DiscretionaryStatus.HARD_LIMIT
    elif percent >= policy.discretionary_warning_percent:
        status = DiscretionaryStatus.WARNING
    else:
        status = DiscretionaryStatus.VALID
    return DiscretionaryValidation(status=status, current_percentage=percent, **thresholds)


def is_valid(
    monthly_income: Decimal,
    buckets: Sequence[AllocationBucket],
    policy: AllocationPolicy = default_allocation_policy,
) -> bool:
    """Sum check passes and discretionary spending is not over the hard limit"""
    return (
        check_allocation_sum(buckets, monthly_income, policy)
        and evaluate_discretionary_spending(buckets, monthly_income, policy).is_valid
    )


class ValidationReport(BaseModel):
    """Everything the confirm screen needs to know about a plan"""

    monthly_income: Decimal = Field(allow_inf_nan=True)
    total_allocated: Decimal
    allocation_percentage: float
    sum_valid: bool
    discretionary: DiscretionaryValidation
    reasons: list[str]

    model_config = {"frozen": True}

    @property
    def is_valid(self) -> bool:
        return not self.reasons

    @property
    def unallocated(self) -> Decimal:
        """Income not yet assigned; negative when over-allocated"""
        return self.monthly_income - self.total_allocated


def validate_plan(
    buckets: Sequence[AllocationBucket],
    monthly_income: Decimal,
    policy: AllocationPolicy = default_allocation_policy,
) -> ValidationReport:
    """Run both checks and collect human-readable reasons for failure"""
    total = total_allocated(buckets)
    percent = allocation_percentage(total, monthly_income)
    sum_valid = check_allocation_sum(buckets, monthly_income, policy)
    discretionary = evaluate_discretionary_spending(buckets, monthly_income, policy)

    reasons: list[str] = []
    if is_degenerate_income(monthly_income):
        reasons.append("monthly income must be positive")
    elif not sum_valid:
        reasons.append(
            f"allocations total {total} ({percent:.1f}% of income), expected 100%"
        )
    if not discretionary.is_valid:
        reasons.append(discretionary.message)

    return ValidationReport(
        monthly_income=monthly_income,
        total_allocated=total,
        allocation_percentage=percent,
        sum_valid=sum_valid,
        discretionary=discretionary,
        reasons=reasons,
    )


def ensure_confirmable(
    buckets: Sequence[AllocationBucket],
    monthly_income: Decimal,
    policy: AllocationPolicy = default_allocation_policy,
) -> ValidationReport:
    """
    Validate a plan that is about to be confirmed

    Raises:
        PlanNotConfirmable: If either check fails
    """
    report = validate_plan(buckets, monthly_income, policy)
    if not report.is_valid:
        raise PlanNotConfirmable(
            reasons=report.reasons,
            allocation_percentage=report.allocation_percentage,
        )
    return report


def max_safe_allocation(
    bucket: AllocationBucket,
    monthly_income: Decimal,
    buckets: Sequence[AllocationBucket],
    policy: AllocationPolicy = default_allocation_policy,
) -> Decimal:
    """
    Largest amount a bucket can take while every other bucket keeps its floor

    Discretionary spending is additionally capped at the hard limit, and
    Essential Spending is whatever was measured.
    """
    if is_degenerate_income(monthly_income):
        return Decimal("0")
    if bucket.bucket_type is BucketType.ESSENTIAL_SPENDING:
        return bucket.allocated_amount

    minimum_for_others = sum(
        (
            policy.recommended_minimum(other.bucket_type, monthly_income)
            for other in buckets
            if other.bucket_id != bucket.bucket_id
        ),
        Decimal("0"),
    )
    maximum = max(Decimal("0"), monthly_income - minimum_for_others)

    if bucket.bucket_type is BucketType.DISCRETIONARY_SPENDING:
        hard_limit = monthly_income * Decimal(str(policy.discretionary_hard_limit_percent)) / 100
        return min(maximum, hard_limit)
    return maximum
