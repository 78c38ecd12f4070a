"""
Prometheus metrics for the allocation planner.

Host applications can scrape these to see how often edits are rebalanced,
how often a plan is left out of balance, and how long rebalancing takes.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# Rebalancing Metrics
# ============================================================================

rebalance_operations_total = Counter(
    "planner_rebalance_operations_total",
    "Total number of bucket edits processed by the rebalancing engine",
    ["status"],
)

bucket_adjustments_total = Counter(
    "planner_bucket_adjustments_total",
    "Total number of individual bucket amount changes",
    ["reason"],
)

unresolved_rebalances_total = Counter(
    "planner_unresolved_rebalances_total",
    "Edits that left the plan total different from monthly income",
)

# ============================================================================
# Session Metrics
# ============================================================================

allocation_percentage = Gauge(
    "planner_allocation_percentage",
    "Current total allocation as a percentage of monthly income",
    ["session_id"],
)

operations_processed_total = Counter(
    "planner_operations_processed_total",
    "Total number of editor operations processed",
    ["operation", "status"],  # status: success, failure
)

operation_duration_seconds = Histogram(
    "planner_operation_duration_seconds",
    "Duration of editor operations, update_bucket includes rebalancing",
    ["operation"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator timing editor operations and counting them by outcome.

    Args:
        operation: Name of the operation being tracked

    Returns:
        Decorated function that records success/failure
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_processed_total.labels(
                    operation=operation, status=status
                ).inc()

        return wrapper

    return decorator

