"""
AllocationEditor - Editing session façade

Holds the working state of one plan while the user reviews it: the current
bucket records, the amounts they started the session with, and the history
of changes. Every edit is handed to the pure rebalancing engine; the editor
stores the returned buckets, logs what happened and updates metrics.

Example:
    >>> from allocation_planner import AllocationEditor
    >>> editor = AllocationEditor()
    >>> editor.initialize(plan.buckets)
    >>> result = editor.update_bucket("discretionary", Decimal("1300"), plan.monthly_income)
    >>> editor.is_valid(plan.monthly_income)
    True
    >>> confirmed = editor.confirm(plan.monthly_income)

Edits are serialized: each update_bucket call runs to completion under the
session lock before the next one starts, because every edit starts from
the result of the previous one.
"""

import threading
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from allocation_planner.allocation.events import AdjustmentReason, BucketAdjustment
from allocation_planner.allocation.invariants import (
    ValidationReport,
    allocation_percentage,
    ensure_confirmable,
    is_valid,
    max_safe_allocation,
    total_allocated,
    validate_plan,
)
from allocation_planner.allocation.models import AllocationBucket, Money, to_decimal
from allocation_planner.allocation.policy import AllocationPolicy, default_allocation_policy
from allocation_planner.allocation.rebalancer import (
    RebalanceResult,
    RebalanceStatus,
    rebalance,
)
from allocation_planner.kernel.errors import SessionNotInitialized
from allocation_planner.kernel.logging import (
    LogOperation,
    generate_correlation_id,
    get_logger,
)
from allocation_planner.kernel.metrics import (
    allocation_percentage as allocation_percentage_gauge,
)
from allocation_planner.kernel.metrics import (
    bucket_adjustments_total,
    rebalance_operations_total,
    track_operation_duration,
    unresolved_rebalances_total,
)
from allocation_planner.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class ConfirmedPlan(BaseModel):
    """Final amounts handed to budget and goal creation"""

    session_id: str
    monthly_income: Decimal
    buckets: list[AllocationBucket]
    confirmed_at: datetime
    report: ValidationReport

    model_config = {"frozen": True}

    def amounts(self) -> dict[str, Decimal]:
        return {b.bucket_id: b.allocated_amount for b in self.buckets}


class AllocationEditor:
    """
    Interactive editing session for one allocation plan

    Provides:
    - initialize / update_bucket / reset_bucket
    - binding-style amount() / set_amount() access
    - session-scoped lock_bucket / unlock_bucket
    - totals, percentage and validation for live display
    - confirm() for handing the plan downstream
    """

    def __init__(
        self,
        policy: AllocationPolicy | None = None,
        time_provider: TimeProvider | None = None,
        session_id: str | None = None,
    ) -> None:
        """
        Args:
            policy: Allocation policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            session_id: Correlation id for logs (generated if None)
        """
        self.policy = policy or default_allocation_policy
        self.time_provider = time_provider or RealTimeProvider()
        self.session_id = session_id or generate_correlation_id()
        self.log = logger.bind(correlation_id=self.session_id)

        self._lock = threading.RLock()
        self._buckets: dict[str, AllocationBucket] | None = None
        self.original_amounts: dict[str, Decimal] = {}
        self.changes: list[BucketAdjustment] = []

    # Session lifecycle

    @property
    def initialized(self) -> bool:
        return self._buckets is not None

    def initialize(self, buckets: Sequence[AllocationBucket]) -> None:
        """
        Start a session from the recommended buckets

        Snapshots every bucket's amount as both the working amount and the
        original used for change tracking and reset. Calling it again
        discards the previous session state.
        """
        with self._lock:
            self._buckets = {b.bucket_id: b for b in buckets}
            self.original_amounts = {b.bucket_id: b.allocated_amount for b in buckets}
            self.changes = []

        self.log.info(
            "Editing session initialized",
            bucket_count=len(self.original_amounts),
            total_allocated=str(self.total_allocated),
        )

    def _require_session(self, operation: str) -> dict[str, AllocationBucket]:
        if self._buckets is None:
            raise SessionNotInitialized(operation)
        return self._buckets

    # Read access

    @property
    def buckets(self) -> list[AllocationBucket]:
        """Current bucket records with working amounts"""
        return list((self._buckets or {}).values())

    @property
    def bucket_amounts(self) -> dict[str, Decimal]:
        return {bucket_id: b.allocated_amount for bucket_id, b in (self._buckets or {}).items()}

    @property
    def total_allocated(self) -> Decimal:
        return total_allocated(self.buckets)

    def allocation_percentage(self, monthly_income: Money) -> float:
        """Total allocated as a percentage of income, 0 when income is degenerate"""
        return allocation_percentage(self.total_allocated, to_decimal(monthly_income))

    def is_valid(self, monthly_income: Money) -> bool:
        return is_valid(to_decimal(monthly_income), self.buckets, self.policy)

    def validate(self, monthly_income: Money) -> ValidationReport:
        return validate_plan(self.buckets, to_decimal(monthly_income), self.policy)

    def amount(self, bucket_id: str, default: Decimal | None = None) -> Decimal | None:
        bucket = (self._buckets or {}).get(bucket_id)
        return bucket.allocated_amount if bucket is not None else default

    def max_safe_allocation(self, bucket_id: str, monthly_income: Money) -> Decimal:
        buckets = self._require_session("compute max safe allocation")
        return max_safe_allocation(
            buckets[bucket_id], to_decimal(monthly_income), self.buckets, self.policy
        )

    @property
    def auto_adjusted(self) -> list[AllocationBucket]:
        """Buckets carrying an unacknowledged automatic change"""
        return [b for b in self.buckets if b.is_auto_adjusted]

    # Edits

    @track_operation_duration("update_bucket")
    def update_bucket(
        self,
        bucket_id: str,
        new_amount: Money,
        monthly_income: Money,
        all_buckets: Sequence[AllocationBucket] | None = None,
    ) -> RebalanceResult:
        """
        Set one bucket and rebalance the others

        Args:
            bucket_id: Bucket the user edited
            new_amount: New amount for that bucket
            monthly_income: Income the plan must add up to
            all_buckets: Optional fresh bucket records from the UI; their
                lock and modifiability flags replace the session's copies,
                amounts always come from the session

        Returns:
            RebalanceResult from the engine (unknown buckets and
            non-modifiable buckets come back unchanged, never raised)

        Raises:
            SessionNotInitialized: If initialize() was never called
        """
        with self._lock:
            current = self._require_session("update bucket")
            if all_buckets is not None:
                self._sync_flags(current, all_buckets)

            with LogOperation(self.log, "update_bucket", bucket_id=bucket_id):
                result = rebalance(
                    list(current.values()),
                    bucket_id,
                    new_amount,
                    monthly_income,
                    policy=self.policy,
                    original_amounts=self.original_amounts,
                    now=self.time_provider.now(),
                )

                if result.status.edit_applied:
                    self._buckets = {b.bucket_id: b for b in result.buckets}
                    self.changes.extend(result.adjustments)

            self._record(result)
        return result

    def _sync_flags(
        self,
        current: dict[str, AllocationBucket],
        all_buckets: Sequence[AllocationBucket],
    ) -> None:
        for incoming in all_buckets:
            bucket = current.get(incoming.bucket_id)
            if bucket is None:
                continue
            if (bucket.is_locked, bucket.is_modifiable) != (
                incoming.is_locked,
                incoming.is_modifiable,
            ):
                current[incoming.bucket_id] = bucket.model_copy(
                    update={
                        "is_locked": incoming.is_locked,
                        "is_modifiable": incoming.is_modifiable,
                    }
                )

    def _record(self, result: RebalanceResult) -> None:
        """Log and count one engine result"""
        status = result.status
        rebalance_operations_total.labels(status=status.value).inc()
        for adjustment in result.adjustments:
            bucket_adjustments_total.labels(reason=adjustment.reason.value).inc()
            self.log.debug(
                "Bucket adjusted",
                bucket=adjustment.bucket_type.display_name,
                old_amount=str(adjustment.old_amount),
                new_amount=str(adjustment.new_amount),
                reason=adjustment.reason.value,
            )

        if status is RebalanceStatus.NOT_FOUND:
            self.log.warning("Bucket not found, edit ignored", bucket_id=result.bucket_id)
            return
        if status is RebalanceStatus.NOT_MODIFIABLE:
            self.log.warning(
                "Cannot modify non-modifiable bucket, edit ignored",
                bucket_id=result.bucket_id,
            )
            return
        if status is RebalanceStatus.INVALID_AMOUNT:
            self.log.warning("Invalid amount, edit ignored", bucket_id=result.bucket_id)
            return

        if status is RebalanceStatus.NEGLIGIBLE:
            self.log.debug("No rebalancing needed (delta too small)", bucket_id=result.bucket_id)
        elif status is RebalanceStatus.NO_CANDIDATES:
            self.log.info("No other unlocked buckets to adjust", bucket_id=result.bucket_id)
        elif status is RebalanceStatus.DEGENERATE_INCOME:
            self.log.warning("Income is zero, negative or not finite, skipped rebalancing")

        # imbalance is NaN for degenerate income, so check the status first
        if status in (
            RebalanceStatus.NO_CANDIDATES,
            RebalanceStatus.UNRESOLVED,
        ) and abs(result.imbalance) > self.policy.rebalance_epsilon:
            unresolved_rebalances_total.inc()
            self.log.warning(
                "Plan left out of balance",
                status=status.value,
                imbalance=str(result.imbalance),
            )

        percent = allocation_percentage(result.total_allocated(), result.monthly_income)
        allocation_percentage_gauge.labels(session_id=self.session_id).set(percent)
        self.log.info(
            "Bucket updated",
            bucket_id=result.bucket_id,
            status=status.value,
            adjustments=len(result.adjustments),
            total_allocated=str(result.total_allocated()),
            allocation_percentage=round(percent, 2),
        )

    @track_operation_duration("reset_bucket")
    def reset_bucket(self, bucket_id: str) -> bool:
        """
        Restore one bucket to its session-start amount

        Other buckets are not rebalanced. Returns False for unknown ids.
        """
        with self._lock:
            current = self._require_session("reset bucket")
            bucket = current.get(bucket_id)
            if bucket is None:
                self.log.warning("Bucket not found, reset ignored", bucket_id=bucket_id)
                return False

            original = self.original_amounts[bucket_id]
            current[bucket_id] = bucket.with_amount(
                original, original, acknowledged=True, now=self.time_provider.now()
            )
            self.changes.append(
                BucketAdjustment(
                    bucket_id=bucket_id,
                    bucket_type=bucket.bucket_type,
                    old_amount=bucket.allocated_amount,
                    new_amount=original,
                    reason=AdjustmentReason.RESET,
                )
            )

        self.log.info("Bucket reset", bucket_id=bucket_id, amount=str(original))
        return True

    def set_amount(self, bucket_id: str, amount: Money) -> None:
        """
        Write a working amount directly, without rebalancing

        This is the raw setter behind a two-way UI binding; use
        update_bucket() for edits that should keep the total pinned.
        """
        with self._lock:
            current = self._require_session("set amount")
            value = to_decimal(amount)
            if not value.is_finite() or value < 0:
                raise ValueError(f"Amount must be a finite, non-negative number, got {amount}")
            bucket = current[bucket_id]
            current[bucket_id] = bucket.with_amount(
                value,
                self.original_amounts[bucket_id],
                acknowledged=True,
                now=self.time_provider.now(),
            )

    def lock_bucket(self, bucket_id: str) -> bool:
        """Exclude a bucket from automatic rebalancing for this session"""
        return self._set_locked(bucket_id, True)

    def unlock_bucket(self, bucket_id: str) -> bool:
        return self._set_locked(bucket_id, False)

    def _set_locked(self, bucket_id: str, locked: bool) -> bool:
        with self._lock:
            current = self._require_session("lock bucket" if locked else "unlock bucket")
            bucket = current.get(bucket_id)
            if bucket is None:
                return False
            current[bucket_id] = bucket.model_copy(update={"is_locked": locked})
        self.log.debug("Bucket lock changed", bucket_id=bucket_id, locked=locked)
        return True

    def acknowledge_changes(self, bucket_id: str | None = None) -> None:
        """Dismiss "auto-adjusted" badges for one bucket or all of them"""
        with self._lock:
            current = self._require_session("acknowledge changes")
            for key, bucket in list(current.items()):
                if bucket_id is None or key == bucket_id:
                    current[key] = bucket.model_copy(update={"change_acknowledged": True})

    # Confirmation

    @track_operation_duration("confirm")
    def confirm(self, monthly_income: Money) -> ConfirmedPlan:
        """
        Validate and freeze the plan for downstream budget/goal creation

        Raises:
            SessionNotInitialized: If initialize() was never called
            PlanNotConfirmable: If the plan does not add up or discretionary
                spending is over the hard limit
        """
        with self._lock:
            self._require_session("confirm plan")
            income = to_decimal(monthly_income)
            buckets = self.buckets
            report = ensure_confirmable(buckets, income, self.policy)
            confirmed = ConfirmedPlan(
                session_id=self.session_id,
                monthly_income=income,
                buckets=buckets,
                confirmed_at=self.time_provider.now(),
                report=report,
            )

        self.log.info(
            "Plan confirmed",
            bucket_count=len(buckets),
            changes=len(self.changes),
            discretionary_status=report.discretionary.status.value,
        )
        return confirmed
