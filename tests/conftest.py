"""
Pytest configuration and shared fixtures

Most tests start from the same plan: $5,000 of monthly income split as
Essential $2,500 (non-modifiable), Emergency Fund $500, Discretionary
$1,000 and Investments $1,000. With the default policy the Emergency Fund
sits exactly on its 10% floor and Investments has $750 above its 5% floor.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from allocation_planner.allocation.models import AllocationBucket, BucketType
from allocation_planner.allocation.policy import AllocationPolicy
from allocation_planner.editor import AllocationEditor
from allocation_planner.kernel.time import TestTimeProvider

BucketFactory = Callable[..., AllocationBucket]


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Deterministic clock pinned to 2025-01-15 12:00 UTC"""
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> AllocationPolicy:
    return AllocationPolicy()


@pytest.fixture
def income() -> Decimal:
    return Decimal("5000")


@pytest.fixture
def make_bucket() -> BucketFactory:
    """Builder for buckets with string amounts"""

    def _make(
        bucket_id: str, bucket_type: BucketType, amount: str, **fields: object
    ) -> AllocationBucket:
        return AllocationBucket(
            bucket_id=bucket_id,
            bucket_type=bucket_type,
            allocated_amount=Decimal(amount),
            **fields,
        )

    return _make


@pytest.fixture
def standard_buckets(make_bucket: BucketFactory) -> list[AllocationBucket]:
    return [
        make_bucket("essential", BucketType.ESSENTIAL_SPENDING, "2500"),
        make_bucket("emergency", BucketType.EMERGENCY_FUND, "500"),
        make_bucket("discretionary", BucketType.DISCRETIONARY_SPENDING, "1000"),
        make_bucket("investments", BucketType.INVESTMENTS, "1000"),
    ]


@pytest.fixture
def editor(
    policy: AllocationPolicy,
    test_time: TestTimeProvider,
    standard_buckets: list[AllocationBucket],
) -> AllocationEditor:
    """Editor already initialized with the standard plan"""
    session = AllocationEditor(policy=policy, time_provider=test_time, session_id="test-session")
    session.initialize(standard_buckets)
    return session


def amounts_of(buckets: list[AllocationBucket]) -> dict[str, Decimal]:
    return {b.bucket_id: b.allocated_amount for b in buckets}


@pytest.fixture
def amounts() -> Callable[[list[AllocationBucket]], dict[str, Decimal]]:
    return amounts_of
