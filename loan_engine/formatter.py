"""Output helpers for the amortization engine.

This module provides simple functions to render schedules, summaries,
early-repayment previews and scenario comparisons in a tabular text format.
We rely only on built-in printing and string formatting.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .data_models import (
    EarlyRepaymentResult,
    ScheduleEntry,
    ScheduleResult,
    SimulationResult,
    SimulationSummary,
)


def print_summary(result: ScheduleResult) -> None:
    """Print the totals of a generated schedule in a human-readable format."""
    schedule = result.schedule
    print("Summary")
    print("-" * 72)
    if result.level_payment:
        print(f"Level payment      : {result.level_payment:.2f}")
    print(f"Total interest     : {result.total_interest:.2f}")
    if result.total_fees:
        print(f"Total fees         : {result.total_fees:.2f}")
    print(f"Total payment      : {result.total_payment:.2f}")
    print(f"Effective rate     : {result.effective_rate:.2f}%")
    if schedule:
        print(f"First due date     : {schedule[0].due_date.isoformat()}")
        print(f"Last due date      : {schedule[-1].due_date.isoformat()}")
        print(f"Installments       : {len(schedule)}")
        # For annuity loans this is the level installment plus fees; for
        # fixed-principal loans the first one; for interest-only the last one.
        print(f"Highest payment    : {max(e.total_due for e in schedule):.2f}")
    print("-" * 72)


def print_schedule(schedule: Iterable[ScheduleEntry], show_overpayment: bool = False) -> None:
    """Print the amortization schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[ScheduleEntry]
        The schedule entries to print.
    show_overpayment: bool
        Whether to include the ``Overpay`` column. Only simulated
        extra-payment schedules carry overpayments.
    """
    headers = ["No", "DueDate", "Principal", "Interest", "Fees", "Total", "Balance"]
    if show_overpayment:
        headers.append("Overpay")
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.installment_no),
            entry.due_date.isoformat(),
            f"{entry.principal_due:.2f}",
            f"{entry.interest_due:.2f}",
            f"{entry.fees_due:.2f}",
            f"{entry.total_due:.2f}",
            f"{entry.principal_balance_after:.2f}",
        ]
        if show_overpayment:
            row.append(f"{entry.overpayment:.2f}")
        print("\t".join(row))


def print_early_repayment(result: EarlyRepaymentResult) -> None:
    print("Early repayment")
    print("-" * 72)
    print(f"Balance before     : {result.balance_before:.2f}")
    print(f"Penalty            : {result.penalty_amount:.2f}")
    print(f"Applied to balance : {result.principal_reduction:.2f}")
    print(f"Paid now           : {result.total_paid_now:.2f}")
    print(f"Remaining balance  : {result.remaining_balance:.2f}")
    print(f"Interest saved     : {result.total_saved:.2f}")
    if result.new_schedule:
        print(f"Installments left  : {len(result.new_schedule)}")
    else:
        print("Loan fully repaid")
    print("-" * 72)


def print_comparison(results: List[SimulationResult], summary: Optional[SimulationSummary] = None) -> None:
    """Print every scenario's metrics next to the baseline.

    A positive saving means the scenario is cheaper or shorter than the
    baseline.
    """
    print("Comparison")
    print("=" * 72)
    if not results:
        print("No scenarios")
        print("=" * 72)
        return
    baseline = results[0].baseline
    print(f"{'Scenario':24s} {'Interest':>12s} {'Total paid':>12s} {'Payoff':>7s} {'Saved':>12s}")
    print(
        f"{'baseline':24s} {baseline.total_interest:12.2f} {baseline.total_payment:12.2f} "
        f"{baseline.payoff_installment:7d} {0:12.2f}"
    )
    for result in results:
        metrics = result.metrics
        print(
            f"{result.scenario.name[:24]:24s} {metrics.total_interest:12.2f} {metrics.total_payment:12.2f} "
            f"{metrics.payoff_installment:7d} {result.interest_saved:12.2f}"
        )
    if summary is not None:
        print("-" * 72)
        print(f"Best scenario      : {summary.best_scenario}")
        low, high = summary.total_interest_range
        print(f"Interest range     : {low:.2f} - {high:.2f}")
        low, high = summary.total_payment_range
        print(f"Total paid range   : {low:.2f} - {high:.2f}")
        low, high = summary.installments_saved_range
        print(f"Months saved range : {low} - {high}")
    print("=" * 72)
