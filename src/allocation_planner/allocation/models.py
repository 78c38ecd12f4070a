"""
Allocation Domain Models - Buckets and plans

A plan splits one month of income across a small, fixed set of buckets.
Buckets are immutable records: every edit produces new bucket values
instead of mutating the old ones, so callers can compare before/after
states and re-render from the returned collection.

Key concepts:
- Modifiable: the user may set the amount directly (Essential Spending
  reflects measured spending and is not modifiable)
- Locked: session-scoped opt-out from automatic compensating adjustments
- Change tracking: signed delta against the last external recommendation
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class BucketType(str, Enum):
    """
    Closed set of allocation buckets

    Order of declaration is the display order used by the CLI.
    """

    ESSENTIAL_SPENDING = "ESSENTIAL_SPENDING"
    EMERGENCY_FUND = "EMERGENCY_FUND"
    DISCRETIONARY_SPENDING = "DISCRETIONARY_SPENDING"
    INVESTMENTS = "INVESTMENTS"
    DEBT_PAYDOWN = "DEBT_PAYDOWN"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def default_categories(self) -> list[str]:
        """Spending categories linked to this bucket when none are given"""
        return list(_DEFAULT_CATEGORIES[self])

    @property
    def is_user_editable(self) -> bool:
        """Essential spending is measured, not chosen"""
        return self is not BucketType.ESSENTIAL_SPENDING


_DISPLAY_NAMES = {
    BucketType.ESSENTIAL_SPENDING: "Essential Spending",
    BucketType.EMERGENCY_FUND: "Emergency Fund",
    BucketType.DISCRETIONARY_SPENDING: "Discretionary Spending",
    BucketType.INVESTMENTS: "Investments",
    BucketType.DEBT_PAYDOWN: "Debt Paydown",
}

_DESCRIPTIONS = {
    BucketType.ESSENTIAL_SPENDING: (
        "Core living expenses including housing, utilities, groceries, "
        "transportation, and healthcare"
    ),
    BucketType.EMERGENCY_FUND: (
        "Safety net for unexpected expenses. Target: 3-6 months of essential expenses"
    ),
    BucketType.DISCRETIONARY_SPENDING: (
        "Non-essential spending on entertainment, dining out, shopping, and hobbies"
    ),
    BucketType.INVESTMENTS: (
        "Long-term wealth building through retirement accounts, stocks, "
        "and other investments"
    ),
    BucketType.DEBT_PAYDOWN: (
        "Extra payments above minimums to retire high-interest debt faster"
    ),
}

_DEFAULT_CATEGORIES: dict[BucketType, tuple[str, ...]] = {
    BucketType.ESSENTIAL_SPENDING: (
        "Groceries",
        "Rent",
        "Utilities",
        "Transportation",
        "Insurance",
        "Healthcare",
        "Childcare",
        "Debt Payments",
    ),
    BucketType.EMERGENCY_FUND: (),  # virtual bucket, no spending categories
    BucketType.DISCRETIONARY_SPENDING: (
        "Entertainment",
        "Dining",
        "Shopping",
        "Travel",
        "Hobbies",
        "Subscriptions",
    ),
    BucketType.INVESTMENTS: (),
    BucketType.DEBT_PAYDOWN: (),
}


Money = Decimal | int | float | str


def to_decimal(value: Money) -> Decimal:
    """Convert user input to Decimal; floats go through str to avoid binary noise"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def is_degenerate_income(monthly_income: Money) -> bool:
    """Zero, negative, NaN or infinite income cannot anchor a plan"""
    income = to_decimal(monthly_income)
    return not income.is_finite() or income <= 0


def percentage_of(amount: Decimal, monthly_income: Decimal) -> float:
    """Amount as a percentage of income; 0 when income is degenerate"""
    if is_degenerate_income(monthly_income):
        return 0.0
    return float(amount / monthly_income * 100)


class AllocationBucket(BaseModel):
    """
    One row of the spending plan

    Attributes:
        bucket_id: Stable identifier
        bucket_type: Which bucket this is
        allocated_amount: Dollars currently assigned (never negative)
        is_modifiable: Whether the user may edit the amount directly
            (defaults to False for Essential Spending, True otherwise)
        is_locked: Excluded from automatic rebalancing this session
        linked_categories: Spending categories shown against this bucket
        linked_account_ids: Bank accounts linked for progress display
        explanation: Rationale supplied by the recommendation step
        target_amount: Savings goal (Emergency Fund only)
        months_to_target: Months to reach the goal (Emergency Fund only)
        change_from_original: Signed delta vs. the original recommendation
        change_acknowledged: False while an automatic change awaits dismissal
    """

    bucket_id: str = Field(default_factory=lambda: str(uuid4()))
    bucket_type: BucketType
    allocated_amount: Decimal = Field(ge=0)
    is_modifiable: bool = True
    is_locked: bool = False
    linked_categories: list[str] = Field(default_factory=list)
    linked_account_ids: list[str] = Field(default_factory=list)
    explanation: str = ""
    target_amount: Decimal | None = Field(default=None, ge=0)
    months_to_target: int | None = Field(default=None, ge=0)
    change_from_original: Decimal = Decimal("0")
    change_acknowledged: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "bucket_id": "bucket-discretionary",
                    "bucket_type": "DISCRETIONARY_SPENDING",
                    "allocated_amount": "1000.00",
                    "is_locked": False,
                    "linked_categories": ["Dining", "Entertainment"],
                    "explanation": "Keeps lifestyle spending near last quarter's average",
                }
            ]
        },
    }

    @model_validator(mode="before")
    @classmethod
    def _default_modifiability(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("is_modifiable") is None:
            try:
                bucket_type = BucketType(data.get("bucket_type"))
            except ValueError:
                return data  # field validation reports the bad type
            data = {**data, "is_modifiable": bucket_type.is_user_editable}
        return data

    @model_validator(mode="after")
    def _goal_fields_only_on_emergency_fund(self) -> "AllocationBucket":
        if self.bucket_type is not BucketType.EMERGENCY_FUND and (
            self.target_amount is not None or self.months_to_target is not None
        ):
            raise ValueError(
                f"target_amount/months_to_target are only valid for "
                f"{BucketType.EMERGENCY_FUND.value}, not {self.bucket_type.value}"
            )
        return self

    @property
    def display_name(self) -> str:
        return self.bucket_type.display_name

    @property
    def original_amount(self) -> Decimal:
        """Amount the recommendation originally assigned"""
        return self.allocated_amount - self.change_from_original

    @property
    def is_auto_adjusted(self) -> bool:
        """True while an unacknowledged change should be badged in the UI"""
        return self.change_from_original != 0 and not self.change_acknowledged

    def percentage_of_income(self, monthly_income: Decimal) -> float:
        """Display percentage of income for this bucket"""
        return percentage_of(self.allocated_amount, monthly_income)

    def with_amount(
        self,
        amount: Decimal,
        original_amount: Decimal,
        *,
        acknowledged: bool,
        now: datetime | None = None,
    ) -> "AllocationBucket":
        """Copy of this bucket at a new amount with change tracking updated"""
        return self.model_copy(
            update={
                "allocated_amount": amount,
                "change_from_original": amount - original_amount,
                "change_acknowledged": acknowledged,
                "updated_at": now or self.updated_at,
            }
        )


class AllocationPlan(BaseModel):
    """
    Monthly income plus the buckets it is split across

    This is the unit handed in by the recommendation step and handed on to
    budget/goal creation once confirmed. It is also the JSON plan file
    format read and written by the CLI.
    """

    monthly_income: Decimal
    buckets: list[AllocationBucket] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_bucket_ids(self) -> "AllocationPlan":
        seen: set[str] = set()
        for bucket in self.buckets:
            if bucket.bucket_id in seen:
                raise ValueError(f"Duplicate bucket_id {bucket.bucket_id}")
            seen.add(bucket.bucket_id)
        return self

    def total_allocated(self) -> Decimal:
        return sum((b.allocated_amount for b in self.buckets), Decimal("0"))

    def get_bucket(self, bucket_id: str) -> AllocationBucket | None:
        for bucket in self.buckets:
            if bucket.bucket_id == bucket_id:
                return bucket
        return None


class DiscretionaryStatus(str, Enum):
    """
    Tri-state outcome of the discretionary spending check

    VALID → WARNING → HARD_LIMIT, driven only by percentage of income.
    HARD_LIMIT blocks confirmation; WARNING is shown but allowed.
    """

    VALID = "VALID"
    WARNING = "WARNING"
    HARD_LIMIT = "HARD_LIMIT"


class DiscretionaryValidation(BaseModel):
    """Discretionary spending check result with user-facing message"""

    status: DiscretionaryStatus
    current_percentage: float = 0.0
    warning_percent: float = 35.0
    hard_limit_percent: float = 50.0

    model_config = {"frozen": True}

    @property
    def is_valid(self) -> bool:
        return self.status is not DiscretionaryStatus.HARD_LIMIT

    @property
    def message(self) -> str:
        if self.status is DiscretionaryStatus.WARNING:
            return (
                f"Discretionary spending is at {int(self.current_percentage)}%. "
                f"Consider keeping it below {self.warning_percent:g}% for better "
                "financial health."
            )
        if self.status is DiscretionaryStatus.HARD_LIMIT:
            return (
                f"Discretionary spending limit exceeded "
                f"({int(self.current_percentage)}%). Please reduce to "
                f"{self.hard_limit_percent:g}% or less of your income."
            )
        return ""
