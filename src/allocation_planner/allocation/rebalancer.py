"""
Rebalancing Engine - Keep the plan pinned to 100% of income

When the user sets one bucket to a new amount, the difference has to come
from (or go to) the other buckets. The engine works in three passes:

1. Priority cascade: walk the policy's priority order and let each eligible
   bucket absorb as much as it can (down to its recommended minimum when
   shrinking, up to the remaining headroom when growing).
2. Proportional fallback: spread whatever is left across every eligible
   bucket, weighted by how much each one can still give or by its size.
3. Rounding reconciliation: move any leftover cents onto the single
   largest eligible bucket.

Eligible means: not the edited bucket, modifiable, unlocked, and allowed to
auto-adjust by the policy. Automatic passes never push a bucket below its
recommended minimum and never below zero.

rebalance() is pure. It takes bucket records and returns new ones together
with the list of adjustments it made; logging and state keeping belong to
the caller (see AllocationEditor).
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum

from pydantic import BaseModel, Field

from allocation_planner.allocation.events import AdjustmentReason, BucketAdjustment
from allocation_planner.allocation.models import (
    AllocationBucket,
    Money,
    is_degenerate_income,
    to_decimal,
)
from allocation_planner.allocation.policy import (
    CENT,
    AllocationPolicy,
    default_allocation_policy,
)

ZERO = Decimal("0")


class RebalanceStatus(str, Enum):
    """
    Outcome of a single edit

    The first three leave every bucket untouched. The rest apply the edit;
    only REBALANCED guarantees the total equals income.
    """

    NOT_FOUND = "NOT_FOUND"
    NOT_MODIFIABLE = "NOT_MODIFIABLE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    NEGLIGIBLE = "NEGLIGIBLE"  # |delta| within epsilon, nothing to compensate
    DEGENERATE_INCOME = "DEGENERATE_INCOME"  # income zero, negative or not finite
    NO_CANDIDATES = "NO_CANDIDATES"  # every other bucket locked or ineligible
    REBALANCED = "REBALANCED"
    UNRESOLVED = "UNRESOLVED"  # candidates exhausted, total still off

    @property
    def edit_applied(self) -> bool:
        return self not in (
            RebalanceStatus.NOT_FOUND,
            RebalanceStatus.NOT_MODIFIABLE,
            RebalanceStatus.INVALID_AMOUNT,
        )


class RebalanceResult(BaseModel):
    """New bucket collection plus what changed to get there"""

    buckets: list[AllocationBucket]
    status: RebalanceStatus
    bucket_id: str
    monthly_income: Decimal = Field(allow_inf_nan=True)
    adjustments: list[BucketAdjustment] = Field(default_factory=list)

    model_config = {"frozen": True}

    def total_allocated(self) -> Decimal:
        return sum((b.allocated_amount for b in self.buckets), ZERO)

    @property
    def imbalance(self) -> Decimal:
        """Total allocated minus income; positive means over-allocated"""
        return self.total_allocated() - self.monthly_income

    @property
    def automatic_adjustments(self) -> list[BucketAdjustment]:
        return [a for a in self.adjustments if a.is_automatic]

    def amounts(self) -> dict[str, Decimal]:
        return {b.bucket_id: b.allocated_amount for b in self.buckets}

    def get_bucket(self, bucket_id: str) -> AllocationBucket | None:
        for bucket in self.buckets:
            if bucket.bucket_id == bucket_id:
                return bucket
        return None


class _Ledger:
    """Working amounts for one rebalance, recording every change"""

    def __init__(self, buckets: Sequence[AllocationBucket]) -> None:
        self.amounts = {b.bucket_id: b.allocated_amount for b in buckets}
        self.adjustments: list[BucketAdjustment] = []

    def total(self) -> Decimal:
        return sum(self.amounts.values(), ZERO)

    def set(self, bucket: AllocationBucket, amount: Decimal, reason: AdjustmentReason) -> Decimal:
        """Set a bucket's amount and return the signed change"""
        old = self.amounts[bucket.bucket_id]
        self.amounts[bucket.bucket_id] = amount
        self.adjustments.append(
            BucketAdjustment(
                bucket_id=bucket.bucket_id,
                bucket_type=bucket.bucket_type,
                old_amount=old,
                new_amount=amount,
                reason=reason,
            )
        )
        return amount - old


def rebalance(
    buckets: Sequence[AllocationBucket],
    bucket_id: str,
    new_amount: Money,
    monthly_income: Money,
    policy: AllocationPolicy = default_allocation_policy,
    original_amounts: Mapping[str, Decimal] | None = None,
    now: datetime | None = None,
) -> RebalanceResult:
    """
    Apply a user edit to one bucket and compensate across the others

    Args:
        buckets: Full current bucket set (amounts are the starting state)
        bucket_id: Bucket the user edited
        new_amount: Amount the user set (finite, non-negative)
        monthly_income: Income the plan must add up to
        policy: Priority order, floors and epsilon
        original_amounts: Session-start amounts for change tracking; a
            bucket missing here uses its own recorded original amount
        now: Timestamp for updated_at on changed buckets

    Returns:
        RebalanceResult with the new buckets, a status, and the adjustments
        in the order they were made
    """
    buckets = list(buckets)
    income = to_decimal(monthly_income)
    eps = policy.rebalance_epsilon

    def finish(status: RebalanceStatus, ledger: _Ledger | None = None) -> RebalanceResult:
        if ledger is None:
            return RebalanceResult(
                buckets=buckets, status=status, bucket_id=bucket_id, monthly_income=income
            )
        return RebalanceResult(
            buckets=_apply_ledger(buckets, ledger, bucket_id, original_amounts, now),
            status=status,
            bucket_id=bucket_id,
            monthly_income=income,
            adjustments=ledger.adjustments,
        )

    edited = next((b for b in buckets if b.bucket_id == bucket_id), None)
    if edited is None:
        return finish(RebalanceStatus.NOT_FOUND)
    if not edited.is_modifiable:
        return finish(RebalanceStatus.NOT_MODIFIABLE)

    amount = to_decimal(new_amount)
    if not amount.is_finite() or amount < 0:
        return finish(RebalanceStatus.INVALID_AMOUNT)

    ledger = _Ledger(buckets)
    old_amount = ledger.amounts[bucket_id]
    delta = amount - old_amount
    if delta != 0:
        ledger.set(edited, amount, AdjustmentReason.DIRECT_EDIT)

    if abs(delta) <= eps:
        return finish(RebalanceStatus.NEGLIGIBLE, ledger)
    if is_degenerate_income(income):
        return finish(RebalanceStatus.DEGENERATE_INCOME, ledger)

    candidates = [
        b
        for b in buckets
        if b.bucket_id != bucket_id
        and b.is_modifiable
        and not b.is_locked
        and policy.participates_in_rebalancing(b.bucket_type)
    ]
    if not candidates:
        return finish(RebalanceStatus.NO_CANDIDATES, ledger)

    # What the other buckets must give up: positive shrinks them, negative grows them
    remaining = _priority_cascade(ledger, candidates, delta, income, policy)
    if abs(remaining) > eps:
        _proportional_fallback(ledger, candidates, remaining, income, policy)
    _reconcile_rounding(ledger, candidates, income, policy)

    balanced = abs(ledger.total() - income) <= eps
    return finish(
        RebalanceStatus.REBALANCED if balanced else RebalanceStatus.UNRESOLVED, ledger
    )


def _priority_cascade(
    ledger: _Ledger,
    candidates: list[AllocationBucket],
    remaining: Decimal,
    monthly_income: Decimal,
    policy: AllocationPolicy,
) -> Decimal:
    eps = policy.rebalance_epsilon
    for bucket_type in policy.priority_order():
        for bucket in (c for c in candidates if c.bucket_type is bucket_type):
            if abs(remaining) <= eps:
                return remaining

            current = ledger.amounts[bucket.bucket_id]
            if remaining > 0:
                floor = policy.recommended_minimum(bucket_type, monthly_income)
                change = -min(remaining, max(ZERO, current - floor))
            else:
                headroom = max(ZERO, monthly_income - ledger.total())
                change = min(-remaining, headroom)

            if abs(change) > eps:
                remaining += ledger.set(
                    bucket, current + change, AdjustmentReason.PRIORITY_CASCADE
                )
    return remaining


def _proportional_fallback(
    ledger: _Ledger,
    candidates: list[AllocationBucket],
    remaining: Decimal,
    monthly_income: Decimal,
    policy: AllocationPolicy,
) -> Decimal:
    eps = policy.rebalance_epsilon
    shrinking = remaining > 0
    floors = {
        b.bucket_id: policy.recommended_minimum(b.bucket_type, monthly_income)
        for b in candidates
    }

    weights: dict[str, Decimal] = {}
    for bucket in candidates:
        current = ledger.amounts[bucket.bucket_id]
        weight = max(ZERO, current - floors[bucket.bucket_id]) if shrinking else current
        if weight > 0:
            weights[bucket.bucket_id] = weight

    total_weight = sum(weights.values(), ZERO)
    if total_weight <= eps:
        return remaining

    if shrinking:
        to_move = min(remaining, total_weight)
    else:
        to_move = min(-remaining, max(ZERO, monthly_income - ledger.total()))
    if to_move <= eps:
        return remaining

    weighted = [b for b in candidates if b.bucket_id in weights]
    moved_so_far = ZERO
    for index, bucket in enumerate(weighted):
        current = ledger.amounts[bucket.bucket_id]
        if index == len(weighted) - 1:
            # Last bucket takes the quantization remainder
            share = max(ZERO, to_move - moved_so_far)
        else:
            share = (to_move * weights[bucket.bucket_id] / total_weight).quantize(
                CENT, rounding=ROUND_HALF_EVEN
            )

        if shrinking:
            new_amount = max(floors[bucket.bucket_id], current - share)
        else:
            new_amount = current + share

        if new_amount != current:
            change = ledger.set(bucket, new_amount, AdjustmentReason.PROPORTIONAL_FALLBACK)
            remaining += change
            moved_so_far += abs(change)
    return remaining


def _reconcile_rounding(
    ledger: _Ledger,
    candidates: list[AllocationBucket],
    monthly_income: Decimal,
    policy: AllocationPolicy,
) -> None:
    difference = monthly_income - ledger.total()
    if abs(difference) <= policy.rebalance_epsilon:
        return

    # max() keeps the first of equal amounts, so ties go to iteration order
    largest = max(candidates, key=lambda b: ledger.amounts[b.bucket_id])
    current = ledger.amounts[largest.bucket_id]
    if difference < 0:
        floor = min(current, policy.recommended_minimum(largest.bucket_type, monthly_income))
        new_amount = max(floor, max(ZERO, current + difference))
    else:
        new_amount = current + difference

    if new_amount != current:
        ledger.set(largest, new_amount, AdjustmentReason.ROUNDING)


def _apply_ledger(
    buckets: list[AllocationBucket],
    ledger: _Ledger,
    edited_id: str,
    original_amounts: Mapping[str, Decimal] | None,
    now: datetime | None,
) -> list[AllocationBucket]:
    touched = {a.bucket_id for a in ledger.adjustments}
    originals = original_amounts or {}
    result = []
    for bucket in buckets:
        if bucket.bucket_id in touched:
            bucket = bucket.with_amount(
                ledger.amounts[bucket.bucket_id],
                originals.get(bucket.bucket_id, bucket.original_amount),
                # the user's own edit needs no "auto-adjusted" badge
                acknowledged=bucket.bucket_id == edited_id,
                now=now,
            )
        result.append(bucket)
    return result
