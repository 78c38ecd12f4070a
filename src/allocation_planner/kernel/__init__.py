"""
Kernel - shared infrastructure for the allocation planner

Errors, structured logging, metrics and the injectable clock. Nothing in
here knows about buckets or money.
"""

from allocation_planner.kernel.errors import (
    InvalidPolicy,
    InvariantViolation,
    PlanFileError,
    PlanNotConfirmable,
    PlannerError,
    PolicyError,
    SessionNotInitialized,
)
from allocation_planner.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Errors
    "PlannerError",
    "SessionNotInitialized",
    "InvariantViolation",
    "PlanNotConfirmable",
    "PolicyError",
    "InvalidPolicy",
    "PlanFileError",
]
