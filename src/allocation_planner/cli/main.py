"""
Allocation Planner CLI

Command-line interface for inspecting and editing allocation plans stored
as JSON plan files.

Usage:
    planner show --plan plan.json
    planner edit --plan plan.json --bucket discretionary --amount 1300 --write
    planner edit --plan plan.json --bucket discretionary --amount 1300 --lock investments
    planner validate --plan plan.json
    planner minimums --income 5000
"""

import json
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import NoReturn, Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from allocation_planner.allocation.goals import bucket_duration_months, months_to_goal
from allocation_planner.allocation.models import AllocationBucket, AllocationPlan, BucketType
from allocation_planner.allocation.policy import (
    AllocationPolicy,
    default_allocation_policy,
    load_policy,
)
from allocation_planner.allocation.rebalancer import RebalanceStatus
from allocation_planner.editor import AllocationEditor
from allocation_planner.kernel.errors import PlanFileError, PlannerError
from allocation_planner.kernel.logging import configure_logging, is_production

# Logs go to stderr so stdout stays clean for plan output
configure_logging(
    json_output=is_production(),
    log_level=os.getenv("PLANNER_LOG_LEVEL", "WARNING"),
)

app = typer.Typer(
    name="planner",
    help="Allocation Planner - split monthly income across buckets",
    add_completion=False,
)

PlanOption = Annotated[Path, typer.Option("--plan", help="Plan file (JSON)")]
PolicyOption = Annotated[
    Optional[Path],
    typer.Option("--policy", help="Allocation policy file (JSON)"),
]


def load_plan(path: Path) -> AllocationPlan:
    """Read and validate a plan file"""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PlanFileError(str(path), exc.strerror or str(exc)) from exc
    try:
        return AllocationPlan.model_validate_json(raw)
    except ValidationError as exc:
        raise PlanFileError(str(path), str(exc)) from exc


def save_plan(plan: AllocationPlan, path: Path) -> None:
    path.write_text(plan.model_dump_json(indent=2) + "\n", encoding="utf-8")


def get_policy(path: Optional[Path]) -> AllocationPolicy:
    if path is None:
        return default_allocation_policy
    return load_policy(path)


def parse_amount(value: str, name: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        amount = Decimal("NaN")
    if not amount.is_finite():
        typer.echo(f"Error: {name} must be a finite number, got {value!r}", err=True)
        raise typer.Exit(1)
    return amount


def fail(exc: PlannerError) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


def money(amount: Decimal) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def print_goal(bucket: AllocationBucket, essential_spending: Decimal) -> None:
    target = bucket.target_amount
    months = bucket_duration_months(bucket, essential_spending)
    # no linked balances in a plan file, so the fund counts from zero
    remaining = months_to_goal(target, Decimal("0"), bucket.allocated_amount)
    pace = f"{remaining} months at this rate" if remaining else "no monthly contribution"
    typer.echo(f"    Goal: {money(target)} ({months} months of essentials), {pace}")


def print_plan(
    buckets: list[AllocationBucket], monthly_income: Decimal, policy: AllocationPolicy
) -> bool:
    """Print a plan table plus validation; returns validity"""
    editor = AllocationEditor(policy=policy)
    editor.initialize(buckets)
    report = editor.validate(monthly_income)

    essential = sum(
        (b.allocated_amount for b in buckets if b.bucket_type is BucketType.ESSENTIAL_SPENDING),
        Decimal("0"),
    )

    typer.echo(f"Monthly income: {money(monthly_income)}")
    for bucket in buckets:
        flags = []
        if not bucket.is_modifiable:
            flags.append("fixed")
        if bucket.is_locked:
            flags.append("locked")
        if bucket.is_auto_adjusted:
            flags.append("auto-adjusted")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        typer.echo(
            f"  {bucket.display_name:<24}{money(bucket.allocated_amount):>14}"
            f"{bucket.percentage_of_income(monthly_income):>8.1f}%"
            f"  ({bucket.bucket_id}){suffix}"
        )
        if bucket.bucket_type is BucketType.EMERGENCY_FUND and bucket.target_amount:
            print_goal(bucket, essential)
    typer.echo(
        f"Total: {money(report.total_allocated)} ({report.allocation_percentage:.1f}%)"
    )

    if report.discretionary.message and report.discretionary.is_valid:
        typer.echo(f"⚠ {report.discretionary.message}")
    if report.is_valid:
        typer.echo("✓ Plan is valid")
    else:
        typer.echo("✗ Plan is invalid:")
        for reason in report.reasons:
            typer.echo(f"  - {reason}")
    return report.is_valid


@app.command()
def show(
    plan: PlanOption,
    policy: PolicyOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show a plan with percentages and validation status"""
    try:
        allocation_plan = load_plan(plan)
        allocation_policy = get_policy(policy)
    except PlannerError as exc:
        fail(exc)

    if json_output:
        typer.echo(allocation_plan.model_dump_json(indent=2))
        return

    print_plan(allocation_plan.buckets, allocation_plan.monthly_income, allocation_policy)


@app.command()
def edit(
    plan: PlanOption,
    bucket: Annotated[str, typer.Option("--bucket", help="Bucket ID to edit")],
    amount: Annotated[str, typer.Option("--amount", help="New amount for the bucket")],
    lock: Annotated[
        Optional[list[str]],
        typer.Option("--lock", help="Bucket ID to keep fixed during rebalancing (repeatable)"),
    ] = None,
    write: Annotated[
        bool,
        typer.Option("--write", help="Write the rebalanced plan back to the file"),
    ] = False,
    policy: PolicyOption = None,
) -> None:
    """Set one bucket's amount and rebalance the others"""
    try:
        allocation_plan = load_plan(plan)
        allocation_policy = get_policy(policy)
    except PlannerError as exc:
        fail(exc)

    new_amount = parse_amount(amount, "--amount")
    editor = AllocationEditor(policy=allocation_policy)
    editor.initialize(allocation_plan.buckets)
    for bucket_id in lock or []:
        if not editor.lock_bucket(bucket_id):
            typer.echo(f"Error: Bucket not found: {bucket_id}", err=True)
            raise typer.Exit(1)

    result = editor.update_bucket(bucket, new_amount, allocation_plan.monthly_income)
    if result.status is RebalanceStatus.NOT_FOUND:
        typer.echo(f"Error: Bucket not found: {bucket}", err=True)
        raise typer.Exit(1)
    if result.status is RebalanceStatus.NOT_MODIFIABLE:
        typer.echo(f"Error: Bucket {bucket} cannot be modified", err=True)
        raise typer.Exit(1)
    if result.status is RebalanceStatus.INVALID_AMOUNT:
        typer.echo(f"Error: Invalid amount: {amount}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Updated {bucket}: {result.status.value}")
    for adjustment in result.adjustments:
        typer.echo(
            f"  {adjustment.bucket_type.display_name}: {money(adjustment.old_amount)} → "
            f"{money(adjustment.new_amount)} ({'+' if adjustment.is_increase else ''}"
            f"{money(adjustment.amount_changed)}) [{adjustment.reason.value}]"
        )
    typer.echo("")
    print_plan(editor.buckets, allocation_plan.monthly_income, allocation_policy)

    if write:
        # Locks given on the command line last for this edit only
        original_locks = {b.bucket_id: b.is_locked for b in allocation_plan.buckets}
        buckets = [
            b.model_copy(update={"is_locked": original_locks[b.bucket_id]})
            for b in editor.buckets
        ]
        save_plan(
            AllocationPlan(monthly_income=allocation_plan.monthly_income, buckets=buckets),
            plan,
        )
        typer.echo(f"✓ Wrote plan: {plan}")


@app.command()
def validate(
    plan: PlanOption,
    policy: PolicyOption = None,
) -> None:
    """Validate a plan; exits with status 1 when it cannot be confirmed"""
    try:
        allocation_plan = load_plan(plan)
        allocation_policy = get_policy(policy)
    except PlannerError as exc:
        fail(exc)

    valid = print_plan(
        allocation_plan.buckets, allocation_plan.monthly_income, allocation_policy
    )
    if not valid:
        raise typer.Exit(1)


@app.command()
def minimums(
    income: Annotated[str, typer.Option("--income", help="Monthly income")],
    policy: PolicyOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the recommended minimum for each bucket type"""
    try:
        allocation_policy = get_policy(policy)
    except PlannerError as exc:
        fail(exc)

    monthly_income = parse_amount(income, "--income")
    floors = {
        bucket_type: allocation_policy.recommended_minimum(bucket_type, monthly_income)
        for bucket_type in BucketType
    }

    if json_output:
        typer.echo(json.dumps({t.value: str(v) for t, v in floors.items()}, indent=2))
        return

    order = allocation_policy.priority_order()
    typer.echo(f"Recommended minimums for {money(monthly_income)}:")
    for bucket_type, floor in floors.items():
        rank = f"#{order.index(bucket_type) + 1}" if bucket_type in order else "-"
        typer.echo(f"  {bucket_type.display_name:<24}{money(floor):>14}  cascade {rank}")


if __name__ == "__main__":
    app()
