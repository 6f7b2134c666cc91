"""What-if simulation against a baseline schedule.

Each scenario keeps the baseline's installments before its
``effective_installment`` and regenerates everything from there on. The
baseline is generated once per call and its metrics travel with every
result, so callers never have to run it again to compare.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
import logging
from typing import List, Optional, Sequence

from .data_models import (
    ANNUITY,
    FIXED_PRINCIPAL,
    EarlyRepaymentRequest,
    ExtraPayment,
    LoanTerms,
    MonthlyExtraPayment,
    RateChange,
    Scenario,
    ScheduleEntry,
    ScheduleMetrics,
    ScheduleResult,
    SimulationResult,
    SimulationSummary,
    TermChange,
)
from .day_count import accrual_fraction
from .early_repayment import balance_before, calculate_early_repayment
from .engine import generate, validate_terms
from .errors import InvalidTerms
from .utils import ZERO, add_months, decimal_context, round_money

logger = logging.getLogger(__name__)

SCENARIO_TYPES = (RateChange, ExtraPayment, TermChange, MonthlyExtraPayment)


def schedule_metrics(schedule: Sequence[ScheduleEntry], balloon: Decimal) -> ScheduleMetrics:
    """Totals and payoff point of a schedule.

    ``total_payment`` includes out-of-band overpayments. ``payoff_installment``
    is the first installment whose balance is at or below ``balloon``.
    """
    total_interest = sum((entry.interest_due for entry in schedule), ZERO)
    total_payment = sum((entry.total_due + entry.overpayment for entry in schedule), ZERO)
    payoff = schedule[-1].installment_no if schedule else 0
    for entry in schedule:
        if entry.principal_balance_after <= balloon:
            payoff = entry.installment_no
            break
    return ScheduleMetrics(
        total_interest=total_interest,
        total_payment=total_payment,
        payoff_installment=payoff,
    )


def _renumber(entries: Sequence[ScheduleEntry], offset: int) -> List[ScheduleEntry]:
    return [replace(entry, installment_no=entry.installment_no + offset) for entry in entries]


def _tail_terms(terms: LoanTerms, baseline: ScheduleResult, start: int, **changes) -> LoanTerms:
    """Terms for re-amortizing from installment ``start`` onwards."""
    changes.setdefault("fixed_monthly_payment", None)
    changes.setdefault("fixed_principal_payment", None)
    if start > 1:
        changes.setdefault("principal", balance_before(terms, baseline, start))
        changes.setdefault("start_date", baseline.schedule[start - 2].due_date)
        changes.setdefault("fee_setup", ZERO)
    return replace(terms, **changes)


def _extra_payment_schedule(
    terms: LoanTerms, baseline: ScheduleResult, scenario: ExtraPayment
) -> List[ScheduleEntry]:
    start = scenario.effective_installment
    prefix = list(baseline.schedule[: start - 1])
    result = calculate_early_repayment(
        EarlyRepaymentRequest(
            terms=terms,
            current_installment=start,
            repayment_amount=scenario.amount,
            penalty_pct=ZERO,
        )
    )
    remaining = result.remaining_balance
    if remaining == 0:
        closing = ScheduleEntry(
            installment_no=start,
            due_date=add_months(terms.start_date, start),
            principal_due=ZERO,
            interest_due=ZERO,
            fees_due=ZERO,
            total_due=ZERO,
            principal_balance_after=ZERO,
            overpayment=result.principal_reduction,
        )
        return prefix + [closing]
    # the lump sum comes on top of installment k, which stays in the schedule
    tail_terms = _tail_terms(
        terms,
        baseline,
        start,
        principal=remaining,
        term_months=terms.term_months - start + 1,
        balloon_amount=min(terms.balloon_amount, remaining),
    )
    tail = _renumber(generate(tail_terms).schedule, start - 1)
    tail[0] = replace(tail[0], overpayment=result.principal_reduction)
    return prefix + tail


def _monthly_extra_schedule(
    terms: LoanTerms, baseline: ScheduleResult, scenario: MonthlyExtraPayment
) -> List[ScheduleEntry]:
    """Keep the regular payment and add ``amount`` of principal to each installment.

    The schedule stops as soon as the balance reaches the balloon.
    """
    if scenario.amount <= 0:
        raise InvalidTerms("Monthly extra payment must be positive")
    convention = validate_terms(terms)
    start = scenario.effective_installment
    term = terms.term_months
    extra = round_money(scenario.amount)
    balloon = round_money(terms.balloon_amount)
    rate = terms.annual_rate / Decimal(100)
    monthly_fees = round_money(terms.monthly_fees)
    fee_setup = round_money(terms.fee_setup)
    level = baseline.level_payment

    schedule = list(baseline.schedule[: start - 1])
    balance = balance_before(terms, baseline, start)
    previous_date = terms.start_date if start == 1 else schedule[-1].due_date
    for installment_no in range(start, term + 1):
        due_date = add_months(terms.start_date, installment_no)
        interest_due = round_money(balance * rate * accrual_fraction(previous_date, due_date, convention))
        payable = balance - balloon
        if installment_no == term:
            principal_due = payable
        else:
            if terms.loan_type == ANNUITY:
                regular = round_money(level - interest_due)
            elif terms.loan_type == FIXED_PRINCIPAL:
                regular = level
            else:
                regular = ZERO
            principal_due = min(max(regular, ZERO) + extra, payable)
        fees_due = monthly_fees + fee_setup if installment_no == 1 else monthly_fees
        balance -= principal_due
        schedule.append(
            ScheduleEntry(
                installment_no=installment_no,
                due_date=due_date,
                principal_due=principal_due,
                interest_due=interest_due,
                fees_due=fees_due,
                total_due=principal_due + interest_due + fees_due,
                principal_balance_after=balance,
            )
        )
        if balance <= balloon:
            break
        previous_date = due_date
    return schedule


@decimal_context
def apply_scenario(terms: LoanTerms, baseline: ScheduleResult, scenario: Scenario) -> List[ScheduleEntry]:
    """Return the full schedule of ``terms`` modified by ``scenario``.

    ``baseline`` must be ``generate(terms)``; it is passed in so that a batch
    of scenarios shares one baseline run.

    Raises
    ------
    InvalidTerms
        For an unknown scenario type, an effective installment outside
        ``1..term_months``, a new term ending before it or a non-positive
        monthly extra payment.
    """
    if not isinstance(scenario, SCENARIO_TYPES):
        raise InvalidTerms(f"Unknown scenario type: {type(scenario).__name__}")
    start = scenario.effective_installment
    term = terms.term_months
    if isinstance(start, bool) or not isinstance(start, int) or not 1 <= start <= term:
        raise InvalidTerms(f"Effective installment {start!r} is outside 1..{term}")

    if isinstance(scenario, ExtraPayment):
        return _extra_payment_schedule(terms, baseline, scenario)
    if isinstance(scenario, MonthlyExtraPayment):
        return _monthly_extra_schedule(terms, baseline, scenario)
    if isinstance(scenario, RateChange):
        tail_terms = _tail_terms(
            terms,
            baseline,
            start,
            annual_rate=scenario.new_annual_rate,
            term_months=term - start + 1,
        )
    else:
        new_term = scenario.new_term_months
        if isinstance(new_term, bool) or not isinstance(new_term, int) or new_term < start:
            raise InvalidTerms(
                f"New term {new_term!r} ends before effective installment {start}"
            )
        tail_terms = _tail_terms(terms, baseline, start, term_months=new_term - start + 1)

    tail = generate(tail_terms).schedule
    return list(baseline.schedule[: start - 1]) + _renumber(tail, start - 1)


@decimal_context
def simulate(
    baseline_terms: LoanTerms,
    scenarios: Sequence[Scenario],
    max_workers: Optional[int] = None,
) -> List[SimulationResult]:
    """Evaluate every scenario independently against the unmodified baseline.

    Parameters
    ----------
    baseline_terms: LoanTerms
        The loan as originally agreed.
    scenarios: Sequence[Scenario]
        Rate changes, extra payments, monthly extra payments and term
        changes, in display order.
    max_workers: int, optional
        When greater than one, scenarios run on a thread pool. Results always
        follow the input order.

    Returns
    -------
    List[SimulationResult]
        One result per scenario, each carrying the baseline metrics.
    """
    baseline = generate(baseline_terms)
    balloon = round_money(baseline_terms.balloon_amount)
    baseline_metrics = schedule_metrics(baseline.schedule, balloon)

    @decimal_context
    def run(scenario: Scenario) -> SimulationResult:
        schedule = apply_scenario(baseline_terms, baseline, scenario)
        return SimulationResult(
            scenario=scenario,
            schedule=schedule,
            metrics=schedule_metrics(schedule, balloon),
            baseline=baseline_metrics,
        )

    logger.debug("Simulating %d scenarios (max_workers=%s)", len(scenarios), max_workers)
    if max_workers and max_workers > 1 and len(scenarios) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(run, scenarios))
    return [run(scenario) for scenario in scenarios]


def summarize(results: Sequence[SimulationResult]) -> SimulationSummary:
    """Pick the cheapest scenario and the spread of the key metrics.

    Raises
    ------
    InvalidTerms
        If ``results`` is empty.
    """
    if not results:
        raise InvalidTerms("Nothing to summarize: no scenarios were simulated")
    best = min(results, key=lambda r: r.metrics.total_payment)
    interest = [r.metrics.total_interest for r in results]
    payment = [r.metrics.total_payment for r in results]
    saved = [r.installments_saved for r in results]
    return SimulationSummary(
        best_scenario=best.scenario.name,
        total_interest_range=(min(interest), max(interest)),
        total_payment_range=(min(payment), max(payment)),
        installments_saved_range=(min(saved), max(saved)),
    )
