"""
Custom exceptions for the allocation planner

Most conditions met while editing a plan (unknown bucket, locked donors,
zero income) are expected states and are reported through result objects.
The classes here cover the remaining failures: caller precondition
violations, plans that cannot be confirmed, and unusable configuration.
"""


class PlannerError(Exception):
    """Base exception for all allocation planner errors"""

    pass


class SessionNotInitialized(PlannerError, RuntimeError):
    """
    Raised when an editing session is used before initialize()

    This is a programming error in the caller, not a runtime condition
    the user can recover from.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: editing session has not been initialized "
            "(call initialize(buckets) first)"
        )


class InvariantViolation(PlannerError):
    """Raised when a plan invariant must hold but does not"""

    pass


class PlanNotConfirmable(InvariantViolation):
    """Raised when a plan fails validation at confirmation time"""

    def __init__(self, reasons: list[str], allocation_percentage: float) -> None:
        self.reasons = reasons
        self.allocation_percentage = allocation_percentage
        super().__init__(
            f"Plan cannot be confirmed at {allocation_percentage:.1f}% allocated: "
            + "; ".join(reasons)
        )


# Configuration Errors


class PolicyError(PlannerError):
    """Base class for allocation policy errors"""

    pass


class InvalidPolicy(PolicyError):
    """Raised when an allocation policy table is internally inconsistent"""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid allocation policy: {reason}")


class PlanFileError(PlannerError):
    """Raised when a plan or policy file cannot be read or parsed"""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load {path}: {reason}")
