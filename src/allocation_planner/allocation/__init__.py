"""
Allocation - Buckets, policy, rebalancing and validation

Splits monthly income across buckets and keeps the split at exactly 100%
of income while the user edits it.
"""

from allocation_planner.allocation.events import AdjustmentReason, BucketAdjustment
from allocation_planner.allocation.goals import (
    DEFAULT_DURATION_MONTHS,
    DURATION_OPTIONS,
    bucket_duration_months,
    effective_duration_months,
    goal_progress,
    months_to_goal,
    target_for_duration,
)
from allocation_planner.allocation.invariants import (
    ValidationReport,
    is_valid,
    validate_plan,
)
from allocation_planner.allocation.models import (
    AllocationBucket,
    AllocationPlan,
    BucketType,
    DiscretionaryStatus,
    DiscretionaryValidation,
)
from allocation_planner.allocation.policy import (
    AllocationPolicy,
    BucketRule,
    default_allocation_policy,
    load_policy,
)
from allocation_planner.allocation.rebalancer import (
    RebalanceResult,
    RebalanceStatus,
    rebalance,
)

__all__ = [
    # Models
    "AllocationBucket",
    "AllocationPlan",
    "BucketType",
    "DiscretionaryStatus",
    "DiscretionaryValidation",
    # Policy
    "AllocationPolicy",
    "BucketRule",
    "default_allocation_policy",
    "load_policy",
    # Engine
    "rebalance",
    "RebalanceResult",
    "RebalanceStatus",
    "AdjustmentReason",
    "BucketAdjustment",
    # Validation
    "ValidationReport",
    "is_valid",
    "validate_plan",
    # Goals
    "DURATION_OPTIONS",
    "DEFAULT_DURATION_MONTHS",
    "target_for_duration",
    "effective_duration_months",
    "bucket_duration_months",
    "months_to_goal",
    "goal_progress",
]
