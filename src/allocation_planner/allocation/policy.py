"""
Allocation Policy - Priority cascade and floor table

The rebalancing engine never switches on bucket types itself. It asks the
policy three questions:

1. In which order should other buckets absorb an edit? (priority_order)
2. How low may automatic rebalancing push a bucket? (recommended_minimum)
3. May this bucket be adjusted automatically at all? (participates_in_rebalancing)

The default table encodes "cut discretionary spending before cutting
investments before touching the emergency fund". Essential Spending and
Debt Paydown sit outside the cascade.
"""

import json
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from allocation_planner.allocation.models import BucketType, is_degenerate_income
from allocation_planner.kernel.errors import InvalidPolicy, PlanFileError

CENT = Decimal("0.01")


class BucketRule(BaseModel):
    """
    Policy row for one bucket type

    Attributes:
        priority: Cascade rank, 1 absorbs changes first; None keeps the
            type out of the cascade (it may still take part in the
            proportional fallback if auto_adjust is True)
        floor_percent: Recommended minimum as a percentage of income
        auto_adjust: Whether the engine may change this bucket to
            compensate for an edit elsewhere
    """

    priority: int | None = Field(default=None, ge=1)
    floor_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    auto_adjust: bool = True

    model_config = {"frozen": True}


def _default_rules() -> dict[BucketType, BucketRule]:
    return {
        BucketType.ESSENTIAL_SPENDING: BucketRule(auto_adjust=False),
        BucketType.DISCRETIONARY_SPENDING: BucketRule(priority=1),
        BucketType.INVESTMENTS: BucketRule(priority=2, floor_percent=Decimal("5")),
        BucketType.EMERGENCY_FUND: BucketRule(priority=3, floor_percent=Decimal("10")),
        # Outside the automatic cascade until product decides otherwise
        BucketType.DEBT_PAYDOWN: BucketRule(auto_adjust=False),
    }


class AllocationPolicy(BaseModel):
    """
    Tunable parameters for rebalancing and validation

    Adding a bucket type or reordering the cascade only touches this table.
    """

    rules: dict[BucketType, BucketRule] = Field(default_factory=_default_rules)

    discretionary_warning_percent: float = Field(
        default=35.0,
        ge=0.0,
        le=100.0,
        description="Discretionary share of income that triggers a warning",
    )

    discretionary_hard_limit_percent: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Discretionary share of income above which a plan is invalid",
    )

    sum_tolerance_percent: float = Field(
        default=0.1,
        gt=0.0,
        description="Allowed distance (percentage points) of the plan total from 100%",
    )

    rebalance_epsilon: Decimal = Field(
        default=CENT,
        gt=0,
        description="Dollar amount below which differences are treated as zero",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _consistent_table(self) -> "AllocationPolicy":
        if self.discretionary_warning_percent > self.discretionary_hard_limit_percent:
            raise ValueError(
                "discretionary_warning_percent must not exceed "
                "discretionary_hard_limit_percent"
            )
        ranks = [r.priority for r in self.rules.values() if r.priority is not None]
        if len(ranks) != len(set(ranks)):
            raise ValueError(f"priority ranks must be unique, got {sorted(ranks)}")
        floors = sum((r.floor_percent for r in self.rules.values()), Decimal("0"))
        if floors > 100:
            raise ValueError(f"floor percentages add up to {floors}%, more than 100%")
        return self

    def rule_for(self, bucket_type: BucketType) -> BucketRule:
        return self.rules.get(bucket_type, BucketRule())

    def priority_order(self) -> list[BucketType]:
        """Bucket types in the order they absorb changes, highest priority first"""
        ranked = [
            (rule.priority, bucket_type)
            for bucket_type, rule in self.rules.items()
            if rule.priority is not None and rule.auto_adjust
        ]
        return [bucket_type for _, bucket_type in sorted(ranked)]

    def recommended_minimum(
        self, bucket_type: BucketType, monthly_income: Decimal
    ) -> Decimal:
        """
        Floor for automatic rebalancing, in dollars

        Returns 0 for types without a floor and for degenerate income.
        """
        if is_degenerate_income(monthly_income):
            return Decimal("0")
        floor_percent = self.rule_for(bucket_type).floor_percent
        return (monthly_income * floor_percent / 100).quantize(CENT, rounding=ROUND_HALF_UP)

    def participates_in_rebalancing(self, bucket_type: BucketType) -> bool:
        return self.rule_for(bucket_type).auto_adjust


default_allocation_policy = AllocationPolicy()


def load_policy(path: str | Path) -> AllocationPolicy:
    """
    Load an allocation policy from a JSON file

    Missing keys fall back to the defaults, so a file may override just the
    discretionary thresholds.

    Raises:
        PlanFileError: If the file is missing or not valid JSON
        InvalidPolicy: If the values do not form a usable policy
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PlanFileError(str(path), exc.strerror or str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise PlanFileError(str(path), f"invalid JSON ({exc.msg})") from exc

    try:
        return AllocationPolicy.model_validate(raw)
    except ValidationError as exc:
        raise InvalidPolicy(str(exc)) from exc
