"""Command-line interface for the amortization engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full amortization schedules, view summaries,
preview an early repayment, compare what-if scenarios against the baseline
and solve for the rate or term behind a known payment. Results can be printed
to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import functools
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from .data_models import (
    LOAN_TYPES,
    PENALTY_DEDUCT,
    PENALTY_MODES,
    EarlyRepaymentRequest,
    ExtraPayment,
    LoanTerms,
    MonthlyExtraPayment,
    RateChange,
    Scenario,
    ScheduleEntry,
    ScheduleResult,
    TermChange,
)
from .day_count import DAY_COUNT_CONVENTIONS
from .early_repayment import calculate_early_repayment
from .engine import generate
from .errors import LoanEngineError
from .formatter import print_comparison, print_early_repayment, print_schedule, print_summary
from .inverse import rate_from_payment, term_from_payment
from .logging_setup import setup_logging
from .serialization import (
    early_repayment_result_to_dict,
    schedule_result_to_dict,
    simulation_result_to_dict,
    simulation_summary_to_dict,
)
from .simulator import simulate, summarize
from .utils import ZERO, decimal_from_str, parse_date

MAX_PRINTED_ROWS = 120


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000).
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_installment_pairs(values: Tuple[str, ...], label: str) -> List[Tuple[int, str]]:
    """Split ``N:VALUE`` strings into ``(installment, value)`` pairs."""
    pairs: List[Tuple[int, str]] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"{label} must be in N:VALUE format; got {item}")
        installment_str, value = parts
        try:
            installment = int(installment_str)
        except ValueError:
            raise click.BadParameter(f"{label} installment must be an integer; got {installment_str}")
        pairs.append((installment, value.strip()))
    return pairs


def build_terms_from_options(
    principal: str,
    rate: str,
    term: int,
    loan_type: str,
    start_date: str,
    day_count: str = "30/360",
    fee_setup: Optional[str] = None,
    fee_monthly: Optional[str] = None,
    insurance_monthly: Optional[str] = None,
    balloon: Optional[str] = None,
) -> LoanTerms:
    try:
        start_dt = parse_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    try:
        annual_rate = decimal_from_str(rate.rstrip("%"))
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    return LoanTerms(
        loan_type=loan_type,
        principal=parse_amount(principal),
        annual_rate=annual_rate,
        term_months=term,
        start_date=start_dt,
        day_count_convention=day_count,
        fee_setup=parse_amount(fee_setup) if fee_setup else ZERO,
        fee_monthly=parse_amount(fee_monthly) if fee_monthly else ZERO,
        insurance_monthly=parse_amount(insurance_monthly) if insurance_monthly else ZERO,
        balloon_amount=parse_amount(balloon) if balloon else ZERO,
    )


def build_scenarios(
    rate_change: Tuple[str, ...],
    extra_payment: Tuple[str, ...],
    term_change: Tuple[str, ...],
    monthly_extra: Tuple[str, ...] = (),
) -> List[Scenario]:
    """Turn the repeated scenario options into scenario objects.

    Scenarios are listed rate changes first, then extra payments, term
    changes and monthly extras, each group in the order given on the command
    line.
    """
    scenarios: List[Scenario] = []
    for installment, value in parse_installment_pairs(rate_change, "Rate change"):
        try:
            new_rate = decimal_from_str(value.rstrip("%"))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        scenarios.append(RateChange(f"Rate {value}% from #{installment}", installment, new_rate))
    for installment, value in parse_installment_pairs(extra_payment, "Extra payment"):
        amount = parse_amount(value)
        scenarios.append(ExtraPayment(f"Extra {amount} at #{installment}", installment, amount))
    for installment, value in parse_installment_pairs(term_change, "Term change"):
        try:
            months = int(value)
        except ValueError:
            raise click.BadParameter(f"Term change months must be an integer; got {value}")
        scenarios.append(TermChange(f"Term {months} months from #{installment}", installment, months))
    for installment, value in parse_installment_pairs(monthly_extra, "Monthly extra"):
        amount = parse_amount(value)
        scenarios.append(MonthlyExtraPayment(f"Extra {amount}/month from #{installment}", installment, amount))
    return scenarios


def export_to_json(path: Path, data: Dict[str, Any]) -> None:
    """Export an already serialised result to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[ScheduleEntry]) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Installment",
        "Due_Date",
        "Principal",
        "Interest",
        "Fees",
        "Total",
        "Balance_After",
        "Status",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for e in schedule:
            writer.writerow(
                [
                    e.installment_no,
                    e.due_date.isoformat(),
                    f"{e.principal_due:.2f}",
                    f"{e.interest_due:.2f}",
                    f"{e.fees_due:.2f}",
                    f"{e.total_due:.2f}",
                    f"{e.principal_balance_after:.2f}",
                    e.status,
                ]
            )


def engine_errors(func: Callable) -> Callable:
    """Report engine failures as click errors (exit code 1) instead of tracebacks."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LoanEngineError as exc:
            raise click.ClickException(f"{exc.kind}: {exc}")

    return wrapper


def loan_options(func: Callable) -> Callable:
    """Attach the options that describe a loan's terms."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount (500k, 1.2m...)"),
        click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months"),
        click.option("--type", "loan_type", type=click.Choice(LOAN_TYPES), default="annuity", help="Loan type"),
        click.option("--start-date", "-s", "start_date", required=True, help="Disbursement date (YYYY-MM-DD)"),
        click.option(
            "--day-count",
            "day_count",
            type=click.Choice(DAY_COUNT_CONVENTIONS, case_sensitive=False),
            default="30/360",
            help="Day-count convention",
        ),
        click.option("--fee-setup", "fee_setup", help="One-time fee charged with the first installment"),
        click.option("--fee-monthly", "fee_monthly", help="Fee charged with every installment"),
        click.option("--insurance-monthly", "insurance_monthly", help="Insurance charged with every installment"),
        click.option("--balloon", "balloon", help="Principal left outstanding after the last installment"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _write_output(output: str, data: Dict[str, Any], schedule: Optional[List[ScheduleEntry]] = None) -> None:
    path = Path(output)
    suffix = path.suffix.lower()
    if suffix == ".json":
        export_to_json(path, data)
    elif suffix == ".csv" and schedule is not None:
        export_to_csv(path, schedule)
    else:
        allowed = ".json or .csv" if schedule is not None else ".json"
        raise click.BadParameter(f"Unsupported output format; use {allowed}")
    click.echo(f"Exported to {path}")


def _print_result(result: ScheduleResult) -> None:
    print_summary(result)
    # Limit schedule length printed to avoid flooding the terminal
    if len(result.schedule) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(result.schedule)} rows; showing first {MAX_PRINTED_ROWS} rows.")
    print_schedule(result.schedule[:MAX_PRINTED_ROWS])


@click.group()
@click.option("--log-level", "log_level", default="WARNING", show_default=True, help="Logging level")
def cli(log_level: str) -> None:
    """Loan amortization schedules, early repayments and what-if scenarios."""
    setup_logging(log_level)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@engine_errors
def schedule(output: Optional[str], **loan: Any) -> None:
    """Compute and print the full amortization schedule."""
    result = generate(build_terms_from_options(**loan))
    if output:
        _write_output(output, schedule_result_to_dict(result), result.schedule)
    else:
        _print_result(result)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
@engine_errors
def summary(output: Optional[str], **loan: Any) -> None:
    """Compute and print only the summary metrics for a loan."""
    result = generate(build_terms_from_options(**loan))
    if output:
        data = schedule_result_to_dict(result)
        _write_output(output, {"summary": data["summary"]})
    else:
        print_summary(result)


@cli.command("early-repayment")
@loan_options
@click.option("--installment", "installment", required=True, type=int, help="Next unpaid installment (1-based)")
@click.option("--amount", "amount", required=True, help="Lump sum paid now")
@click.option("--penalty-pct", "penalty_pct", default="0", help="Penalty as a percentage of the lump sum")
@click.option(
    "--penalty-mode",
    "penalty_mode",
    type=click.Choice(PENALTY_MODES),
    default=PENALTY_DEDUCT,
    help="deduct: penalty reduces the amount applied to principal; surcharge: penalty is paid on top",
)
@click.option("--output", "output", type=str, help="Output file path (.json)")
@engine_errors
def early_repayment(
    installment: int,
    amount: str,
    penalty_pct: str,
    penalty_mode: str,
    output: Optional[str],
    **loan: Any,
) -> None:
    """Preview the effect of an early repayment."""
    try:
        pct = decimal_from_str(penalty_pct.rstrip("%"))
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    request = EarlyRepaymentRequest(
        terms=build_terms_from_options(**loan),
        current_installment=installment,
        repayment_amount=parse_amount(amount),
        penalty_pct=pct,
        penalty_mode=penalty_mode,
    )
    result = calculate_early_repayment(request)
    if output:
        _write_output(output, early_repayment_result_to_dict(result))
        return
    print_early_repayment(result)
    if result.new_schedule:
        print_schedule(result.new_schedule[:MAX_PRINTED_ROWS])


@cli.command("simulate")
@loan_options
@click.option("--rate-change", "rate_change", multiple=True, help="Rate change in N:RATE format")
@click.option("--extra-payment", "extra_payment", multiple=True, help="Extra payment in N:AMOUNT format")
@click.option("--term-change", "term_change", multiple=True, help="New total term in N:MONTHS format")
@click.option("--monthly-extra", "monthly_extra", multiple=True, help="Extra principal every month from N, in N:AMOUNT format")
@click.option("--workers", "workers", type=int, default=None, help="Evaluate scenarios on this many threads")
@click.option("--output", "output", type=str, help="Output file path (.json)")
@engine_errors
def simulate_command(
    rate_change: Tuple[str, ...],
    extra_payment: Tuple[str, ...],
    term_change: Tuple[str, ...],
    monthly_extra: Tuple[str, ...],
    workers: Optional[int],
    output: Optional[str],
    **loan: Any,
) -> None:
    """Compare what-if scenarios against the unmodified loan.

    Example:

        loan-engine simulate -p 200k -r 4.5 -t 240 -s 2025-01-01 --rate-change 13:3.9 --extra-payment 24:20k
    """
    scenarios = build_scenarios(rate_change, extra_payment, term_change, monthly_extra)
    if not scenarios:
        raise click.UsageError("Give at least one --rate-change, --extra-payment, --term-change or --monthly-extra")
    results = simulate(build_terms_from_options(**loan), scenarios, max_workers=workers)
    if output:
        _write_output(
            output,
            {
                "scenarios": [simulation_result_to_dict(r) for r in results],
                "summary": simulation_summary_to_dict(summarize(results)),
            },
        )
    else:
        print_comparison(results, summarize(results))


@cli.command("solve-rate")
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--payment", "payment", required=True, help="Monthly payment including fees")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months")
@click.option("--type", "loan_type", type=click.Choice(LOAN_TYPES), default="annuity", help="Loan type")
@click.option("--monthly-fees", "monthly_fees", default="0", help="Fees and insurance included in the payment")
@engine_errors
def solve_rate(principal: str, payment: str, term: int, loan_type: str, monthly_fees: str) -> None:
    """Find the annual rate implied by a monthly payment."""
    rate = rate_from_payment(
        parse_amount(principal), parse_amount(payment), term, loan_type, parse_amount(monthly_fees)
    )
    click.echo(f"Annual rate: {rate:.2f}%")


@cli.command("solve-term")
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)")
@click.option("--payment", "payment", required=True, help="Monthly payment including fees")
@click.option("--type", "loan_type", type=click.Choice(LOAN_TYPES), default="annuity", help="Loan type")
@click.option("--monthly-fees", "monthly_fees", default="0", help="Fees and insurance included in the payment")
@engine_errors
def solve_term(principal: str, rate: str, payment: str, loan_type: str, monthly_fees: str) -> None:
    """Find how many months a monthly payment needs to repay a loan."""
    try:
        annual_rate = decimal_from_str(rate.rstrip("%"))
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    months = term_from_payment(
        parse_amount(principal), annual_rate, parse_amount(payment), loan_type, parse_amount(monthly_fees)
    )
    click.echo(f"Term: {months} months")


if __name__ == "__main__":
    cli()
