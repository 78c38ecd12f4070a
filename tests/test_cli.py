"""
CLI Integration Tests

Runs the planner commands end-to-end against plan files in a temporary
directory.
"""

import json
from decimal import Decimal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from allocation_planner.allocation.models import AllocationPlan
from allocation_planner.cli.main import app

runner = CliRunner()


def write_plan(path: Path, discretionary: str = "1000", investments: str = "1000") -> Path:
    path.write_text(
        json.dumps(
            {
                "monthly_income": "5000",
                "buckets": [
                    {"bucket_id": "essential", "bucket_type": "ESSENTIAL_SPENDING", "allocated_amount": "2500"},
                    {"bucket_id": "emergency", "bucket_type": "EMERGENCY_FUND", "allocated_amount": "500"},
                    {"bucket_id": "discretionary", "bucket_type": "DISCRETIONARY_SPENDING", "allocated_amount": discretionary},
                    {"bucket_id": "investments", "bucket_type": "INVESTMENTS", "allocated_amount": investments},
                ],
            }
        )
    )
    return path


@pytest.fixture
def plan_file(tmp_path) -> Path:
    return write_plan(tmp_path / "plan.json")


def test_show_plan(plan_file) -> None:
    result = runner.invoke(app, ["show", "--plan", str(plan_file)])

    assert result.exit_code == 0
    assert "Monthly income: $5,000.00" in result.stdout
    assert "Essential Spending" in result.stdout
    assert "[fixed]" in result.stdout
    assert "Total: $5,000.00 (100.0%)" in result.stdout
    assert "✓ Plan is valid" in result.stdout


def test_show_emergency_goal(tmp_path) -> None:
    path = write_plan(tmp_path / "plan.json")
    plan = json.loads(path.read_text())
    plan["buckets"][1]["target_amount"] = "15000"
    path.write_text(json.dumps(plan))

    result = runner.invoke(app, ["show", "--plan", str(path)])

    assert result.exit_code == 0
    assert "Goal: $15,000.00 (6 months of essentials), 30 months at this rate" in result.stdout


def test_show_without_goal(plan_file) -> None:
    result = runner.invoke(app, ["show", "--plan", str(plan_file)])

    assert "Goal:" not in result.stdout


def test_show_json(plan_file) -> None:
    result = runner.invoke(app, ["show", "--plan", str(plan_file), "--json"])

    assert result.exit_code == 0
    plan = AllocationPlan.model_validate_json(result.stdout)
    assert plan.total_allocated() == Decimal("5000")


def test_show_warns_about_discretionary(tmp_path) -> None:
    plan_file = write_plan(tmp_path / "plan.json", discretionary="2000", investments="0")

    result = runner.invoke(app, ["show", "--plan", str(plan_file)])

    assert result.exit_code == 0
    assert "⚠ Discretionary spending is at 40%" in result.stdout


def test_edit_prints_adjustments(plan_file) -> None:
    result = runner.invoke(
        app, ["edit", "--plan", str(plan_file), "--bucket", "discretionary", "--amount", "1300"]
    )

    assert result.exit_code == 0
    assert "✓ Updated discretionary: REBALANCED" in result.stdout
    assert "Investments: $1,000.00 → $700.00" in result.stdout
    assert "[PRIORITY_CASCADE]" in result.stdout
    assert "auto-adjusted" in result.stdout

    # without --write the file is untouched
    plan = AllocationPlan.model_validate_json(plan_file.read_text())
    assert plan.get_bucket("investments").allocated_amount == Decimal("1000")


def test_edit_write(plan_file) -> None:
    result = runner.invoke(
        app,
        [
            "edit",
            "--plan", str(plan_file),
            "--bucket", "discretionary",
            "--amount", "700",
            "--lock", "investments",
            "--write",
        ],
    )

    assert result.exit_code == 0
    assert "✓ Wrote plan:" in result.stdout

    plan = AllocationPlan.model_validate_json(plan_file.read_text())
    assert plan.get_bucket("discretionary").allocated_amount == Decimal("700")
    assert plan.get_bucket("emergency").allocated_amount == Decimal("800")
    assert plan.get_bucket("investments").allocated_amount == Decimal("1000")
    assert not plan.get_bucket("investments").is_locked
    assert plan.get_bucket("emergency").is_auto_adjusted


def test_edit_unresolved_reports_invalid(plan_file) -> None:
    result = runner.invoke(
        app,
        [
            "edit",
            "--plan", str(plan_file),
            "--bucket", "discretionary",
            "--amount", "1300",
            "--lock", "investments",
        ],
    )

    assert result.exit_code == 0
    assert "UNRESOLVED" in result.stdout
    assert "✗ Plan is invalid:" in result.stdout


@pytest.mark.parametrize(
    "bucket,amount",
    [
        ("essential", "2000"),
        ("missing", "100"),
        ("discretionary", "-5"),
        ("discretionary", "lots"),
    ],
)
def test_edit_rejected(plan_file, bucket, amount) -> None:
    result = runner.invoke(
        app, ["edit", "--plan", str(plan_file), "--bucket", bucket, f"--amount={amount}"]
    )

    assert result.exit_code == 1
    assert "Updated" not in result.stdout


def test_edit_lock_unknown_bucket(plan_file) -> None:
    result = runner.invoke(
        app,
        ["edit", "--plan", str(plan_file), "--bucket", "discretionary", "--amount", "1300", "--lock", "nope"],
    )

    assert result.exit_code == 1


def test_validate(plan_file, tmp_path) -> None:
    assert runner.invoke(app, ["validate", "--plan", str(plan_file)]).exit_code == 0

    bad = write_plan(tmp_path / "bad.json", discretionary="1500")
    result = runner.invoke(app, ["validate", "--plan", str(bad)])

    assert result.exit_code == 1
    assert "expected 100%" in result.stdout


def test_validate_with_policy(plan_file, tmp_path) -> None:
    policy = tmp_path / "policy.json"
    policy.write_text(
        json.dumps({"discretionary_warning_percent": 10, "discretionary_hard_limit_percent": 15})
    )

    result = runner.invoke(app, ["validate", "--plan", str(plan_file), "--policy", str(policy)])

    assert result.exit_code == 1
    assert "15% or less" in result.stdout


def test_missing_plan_file(tmp_path) -> None:
    result = runner.invoke(app, ["show", "--plan", str(tmp_path / "missing.json")])

    assert result.exit_code == 1


def test_malformed_plan_file(tmp_path) -> None:
    path = tmp_path / "plan.json"
    path.write_text('{"monthly_income": "5000", "buckets": [{"bucket_type": "NOPE"}]}')

    result = runner.invoke(app, ["validate", "--plan", str(path)])

    assert result.exit_code == 1


def test_minimums_json() -> None:
    result = runner.invoke(app, ["minimums", "--income", "5000", "--json"])

    assert result.exit_code == 0
    floors = json.loads(result.stdout)
    assert Decimal(floors["EMERGENCY_FUND"]) == Decimal("500")
    assert Decimal(floors["INVESTMENTS"]) == Decimal("250")
    assert Decimal(floors["DISCRETIONARY_SPENDING"]) == 0


def test_minimums_table() -> None:
    result = runner.invoke(app, ["minimums", "--income", "5000"])

    assert result.exit_code == 0
    assert "Recommended minimums for $5,000.00:" in result.stdout
    assert "cascade #1" in result.stdout


@pytest.mark.parametrize("income", ["nan", "inf", "lots"])
def test_minimums_rejects_non_finite_income(income) -> None:
    result = runner.invoke(app, ["minimums", f"--income={income}"])

    assert result.exit_code == 1
    assert "Recommended minimums" not in result.stdout
