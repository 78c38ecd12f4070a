"""
Tests for plan validation

Covers the sum check, the discretionary thresholds, degenerate income and
the max-safe-allocation helper.
"""

from decimal import Decimal

import pytest

from allocation_planner.allocation.invariants import (
    allocation_percentage,
    check_allocation_sum,
    ensure_confirmable,
    evaluate_discretionary_spending,
    is_valid,
    max_safe_allocation,
    validate_plan,
)
from allocation_planner.allocation.models import BucketType, DiscretionaryStatus
from allocation_planner.allocation.policy import AllocationPolicy
from allocation_planner.kernel.errors import PlanNotConfirmable


@pytest.fixture
def two_bucket_plan(make_bucket):
    """Essential plus discretionary, always summing to $5,000"""

    def _plan(discretionary: str):
        essential = Decimal("5000") - Decimal(discretionary)
        return [
            make_bucket("essential", BucketType.ESSENTIAL_SPENDING, str(essential)),
            make_bucket("discretionary", BucketType.DISCRETIONARY_SPENDING, discretionary),
        ]

    return _plan


class TestAllocationSum:
    def test_standard_plan_is_valid(self, standard_buckets, income) -> None:
        assert check_allocation_sum(standard_buckets, income)
        assert is_valid(income, standard_buckets)

    def test_within_tolerance(self, standard_buckets, make_bucket, income) -> None:
        """$4 over on $5,000 is 100.08%, inside the 0.1 point tolerance"""
        buckets = standard_buckets + [make_bucket("extra", BucketType.DEBT_PAYDOWN, "4")]

        assert check_allocation_sum(buckets, income)

    def test_outside_tolerance(self, standard_buckets, make_bucket, income) -> None:
        buckets = standard_buckets + [make_bucket("extra", BucketType.DEBT_PAYDOWN, "6")]

        assert not check_allocation_sum(buckets, income)
        assert not is_valid(income, buckets)

    def test_under_allocated_is_invalid(self, standard_buckets, income) -> None:
        assert not check_allocation_sum(standard_buckets[:-1], income)

    def test_tolerance_comes_from_policy(self, standard_buckets, make_bucket, income) -> None:
        buckets = standard_buckets + [make_bucket("extra", BucketType.DEBT_PAYDOWN, "6")]

        assert check_allocation_sum(buckets, income, AllocationPolicy(sum_tolerance_percent=0.5))


class TestDegenerateIncome:
    @pytest.mark.parametrize(
        "income", [Decimal("0"), Decimal("-500"), Decimal("NaN"), Decimal("Infinity")]
    )
    def test_never_valid_never_raises(self, standard_buckets, income) -> None:
        assert allocation_percentage(Decimal("5000"), income) == 0.0
        assert not check_allocation_sum(standard_buckets, income)
        assert not is_valid(income, standard_buckets)
        assert evaluate_discretionary_spending(standard_buckets, income).status is DiscretionaryStatus.VALID
        assert max_safe_allocation(standard_buckets[3], income, standard_buckets) == 0

    @pytest.mark.parametrize("income", [Decimal("0"), Decimal("NaN"), Decimal("-Infinity")])
    def test_report_explains_income(self, standard_buckets, income) -> None:
        report = validate_plan(standard_buckets, income)

        assert not report.is_valid
        assert report.reasons == ["monthly income must be positive"]
        assert report.allocation_percentage == 0.0


class TestDiscretionarySpending:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("1000", DiscretionaryStatus.VALID),
            ("1749", DiscretionaryStatus.VALID),
            ("1750", DiscretionaryStatus.WARNING),
            ("2500", DiscretionaryStatus.WARNING),
            ("2501", DiscretionaryStatus.HARD_LIMIT),
        ],
    )
    def test_thresholds(self, two_bucket_plan, income, amount, expected) -> None:
        result = evaluate_discretionary_spending(two_bucket_plan(amount), income)

        assert result.status is expected

    def test_warning_still_valid(self, two_bucket_plan, income) -> None:
        buckets = two_bucket_plan("2000")
        result = evaluate_discretionary_spending(buckets, income)

        assert result.status is DiscretionaryStatus.WARNING
        assert result.is_valid
        assert result.current_percentage == pytest.approx(40.0)
        assert "40%" in result.message
        assert "35%" in result.message
        assert is_valid(income, buckets)

    def test_hard_limit_blocks_plan(self, two_bucket_plan, income) -> None:
        buckets = two_bucket_plan("3000")
        result = evaluate_discretionary_spending(buckets, income)

        assert not result.is_valid
        assert "limit exceeded (60%)" in result.message
        assert "50% or less" in result.message
        assert not is_valid(income, buckets)

    def test_no_discretionary_bucket(self, make_bucket, income) -> None:
        buckets = [make_bucket("essential", BucketType.ESSENTIAL_SPENDING, "5000")]

        result = evaluate_discretionary_spending(buckets, income)

        assert result.status is DiscretionaryStatus.VALID
        assert result.message == ""

    def test_custom_thresholds(self, two_bucket_plan, income) -> None:
        policy = AllocationPolicy(
            discretionary_warning_percent=20.0, discretionary_hard_limit_percent=30.0
        )

        result = evaluate_discretionary_spending(two_bucket_plan("1600"), income, policy)

        assert result.status is DiscretionaryStatus.HARD_LIMIT
        assert "30% or less" in result.message


class TestConfirmation:
    def test_valid_plan_passes(self, standard_buckets, income) -> None:
        report = ensure_confirmable(standard_buckets, income)

        assert report.is_valid
        assert report.unallocated == Decimal("0")
        assert report.allocation_percentage == pytest.approx(100.0)

    def test_invalid_plan_raises_with_reasons(self, two_bucket_plan, make_bucket, income) -> None:
        buckets = two_bucket_plan("3000") + [make_bucket("extra", BucketType.INVESTMENTS, "500")]

        with pytest.raises(PlanNotConfirmable) as exc_info:
            ensure_confirmable(buckets, income)

        assert len(exc_info.value.reasons) == 2
        assert "expected 100%" in exc_info.value.reasons[0]
        assert exc_info.value.allocation_percentage == pytest.approx(110.0)

    def test_report_shows_unallocated(self, standard_buckets, income) -> None:
        report = validate_plan(standard_buckets[:-1], income)

        assert report.unallocated == Decimal("1000")
        assert not report.sum_valid


class TestMaxSafeAllocation:
    def test_discretionary_capped_at_hard_limit(self, standard_buckets, income) -> None:
        discretionary = standard_buckets[2]

        assert max_safe_allocation(discretionary, income, standard_buckets) == Decimal("2500")

    def test_leaves_room_for_other_floors(self, standard_buckets, income) -> None:
        investments = standard_buckets[3]

        # only the emergency fund floor ($500) has to stay behind
        assert max_safe_allocation(investments, income, standard_buckets) == Decimal("4500.00")

    def test_essential_is_its_own_amount(self, standard_buckets, income) -> None:
        essential = standard_buckets[0]

        assert max_safe_allocation(essential, income, standard_buckets) == Decimal("2500")

    def test_zero_income(self, standard_buckets) -> None:
        assert max_safe_allocation(standard_buckets[3], Decimal("0"), standard_buckets) == 0
