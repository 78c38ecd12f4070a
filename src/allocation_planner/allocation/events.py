"""
Allocation Events - What changed during a rebalance

The engine returns one BucketAdjustment per amount change, in the order the
changes were made. Callers use them to render "auto-adjusted" toasts, to
log, and to keep an edit history; the engine itself never logs.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from allocation_planner.allocation.models import BucketType


class AdjustmentReason(str, Enum):
    """Which step of an edit produced an amount change"""

    DIRECT_EDIT = "DIRECT_EDIT"  # the user set this bucket
    PRIORITY_CASCADE = "PRIORITY_CASCADE"
    PROPORTIONAL_FALLBACK = "PROPORTIONAL_FALLBACK"
    ROUNDING = "ROUNDING"  # residual cents moved to the largest bucket
    RESET = "RESET"  # restored to the session-start amount


class BucketAdjustment(BaseModel):
    """A single change to one bucket's allocated amount"""

    bucket_id: str
    bucket_type: BucketType
    old_amount: Decimal
    new_amount: Decimal
    reason: AdjustmentReason

    model_config = {"frozen": True}

    @property
    def amount_changed(self) -> Decimal:
        return self.new_amount - self.old_amount

    @property
    def is_increase(self) -> bool:
        return self.new_amount > self.old_amount

    @property
    def is_automatic(self) -> bool:
        return self.reason not in (AdjustmentReason.DIRECT_EDIT, AdjustmentReason.RESET)
