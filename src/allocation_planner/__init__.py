"""
Allocation Planner - Income allocation and bucket rebalancing

Splits a month of income across essential spending, emergency fund,
discretionary spending, investments and debt paydown, and keeps that split
at exactly 100% of income while the user edits it.
"""

from allocation_planner.editor import AllocationEditor, ConfirmedPlan

__version__ = "0.1.0"
__all__ = ["AllocationEditor", "ConfirmedPlan", "__version__"]
