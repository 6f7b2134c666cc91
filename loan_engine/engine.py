"""Core calculation engine for the amortization engine.

This module implements the schedule generator for annuity, fixed-principal
and interest-only loans. Interest for each period is accrued on the actual
outstanding balance using the loan's day-count convention, so the annuity
split drifts slightly from the textbook formula; that drift, and any other
rounding residual, is absorbed by the final installment and nowhere else.
Results are returned as a :class:`~loan_engine.data_models.ScheduleResult`.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from scipy.optimize import brentq

from .data_models import (
    ANNUITY,
    FIXED_PRINCIPAL,
    LOAN_TYPES,
    LoanTerms,
    ScheduleEntry,
    ScheduleResult,
)
from .day_count import accrual_fraction, nominal_month_fraction, normalize_convention
from .errors import InvalidTerms
from .utils import ZERO, add_months, decimal_context, round_money

logger = logging.getLogger(__name__)


@decimal_context
def annuity_payment(
    principal: Decimal, periodic_rate: Decimal, term: int, balloon: Decimal = ZERO
) -> Decimal:
    """Return the level payment that amortizes ``principal`` down to ``balloon``.

    The formula is:

        payment = (P * (1 + i)^n - B) * i / ((1 + i)^n - 1)

    where ``P`` is the principal, ``B`` the balloon left after the last
    payment, ``i`` the periodic rate and ``n`` the number of payments. When
    the rate is zero, the payment simplifies to ``(P - B) / n``. The result is
    not rounded.
    """
    if term <= 0:
        raise InvalidTerms("Term must be positive")
    if periodic_rate == 0:
        return (principal - balloon) / Decimal(term)
    factor = (1 + periodic_rate) ** term
    return (principal * factor - balloon) * periodic_rate / (factor - 1)


def validate_terms(terms: LoanTerms) -> str:
    """Check ``terms`` and return the canonical day-count tag.

    Raises
    ------
    InvalidTerms
        For an unknown loan type, non-positive principal or term, a negative
        rate or fee, or a balloon larger than the principal.
    UnsupportedConvention
        For an unknown day-count convention.
    """
    if terms.loan_type not in LOAN_TYPES:
        raise InvalidTerms(f"Unknown loan type: {terms.loan_type}")
    if terms.principal <= 0:
        raise InvalidTerms("Principal must be positive")
    if isinstance(terms.term_months, bool) or not isinstance(terms.term_months, int):
        raise InvalidTerms("Term must be a whole number of months")
    if terms.term_months <= 0:
        raise InvalidTerms("Term must be positive")
    if terms.annual_rate < 0:
        raise InvalidTerms("Annual rate cannot be negative")
    if min(terms.fee_setup, terms.fee_monthly, terms.insurance_monthly) < 0:
        raise InvalidTerms("Fees cannot be negative")
    if terms.balloon_amount < 0:
        raise InvalidTerms("Balloon amount cannot be negative")
    if terms.balloon_amount > terms.principal:
        raise InvalidTerms("Balloon amount cannot exceed the principal")
    for name in ("fixed_monthly_payment", "fixed_principal_payment"):
        value = getattr(terms, name)
        if value is not None and value <= 0:
            raise InvalidTerms(f"{name} must be positive")
    return normalize_convention(terms.day_count_convention)


def _level_payment(terms: LoanTerms, convention: str, principal: Decimal, balloon: Decimal) -> Decimal:
    if terms.loan_type == ANNUITY:
        if terms.fixed_monthly_payment is not None:
            return terms.fixed_monthly_payment
        periodic_rate = terms.annual_rate / Decimal(100) * nominal_month_fraction(convention)
        return annuity_payment(principal, periodic_rate, terms.term_months, balloon)
    if terms.loan_type == FIXED_PRINCIPAL:
        if terms.fixed_principal_payment is not None:
            return round_money(terms.fixed_principal_payment)
        return round_money((principal - balloon) / Decimal(terms.term_months))
    return ZERO


def _effective_rate(principal: Decimal, schedule: List[ScheduleEntry], balloon: Decimal) -> Decimal:
    """Annualised IRR of the borrower's cash flows, in percent.

    The balloon left after the last installment is counted as repaid with it.
    """
    flows = [float(entry.total_due) for entry in schedule]
    flows[-1] += float(balloon)
    amount = float(principal)

    def npv(monthly_rate: float) -> float:
        return amount - sum(
            flow / (1.0 + monthly_rate) ** month for month, flow in enumerate(flows, start=1)
        )

    if npv(0.0) >= 0:
        return ZERO
    upper = 1.0
    for _ in range(64):
        if npv(upper) > 0:
            break
        upper *= 2
    monthly = brentq(npv, 0.0, upper, xtol=1e-12, maxiter=200)
    return round_money(Decimal(repr(monthly * 12 * 100)))


@decimal_context
def generate(terms: LoanTerms) -> ScheduleResult:
    """Compute the amortization schedule for a loan.

    Parameters
    ----------
    terms: LoanTerms
        The loan terms. Principal and balloon are rounded to cents first.

    Returns
    -------
    ScheduleResult
        One entry per month, in order, plus totals. ``total_payment`` is the
        sum of every ``total_due`` (setup fee included, balloon excluded).
    """
    convention = validate_terms(terms)
    term = terms.term_months
    principal = round_money(terms.principal)
    balloon = round_money(terms.balloon_amount)
    rate = terms.annual_rate / Decimal(100)
    monthly_fees = round_money(terms.monthly_fees)
    fee_setup = round_money(terms.fee_setup)
    level = _level_payment(terms, convention, principal, balloon)

    schedule: List[ScheduleEntry] = []
    balance = principal
    previous_date = terms.start_date
    for installment_no in range(1, term + 1):
        due_date = add_months(terms.start_date, installment_no)
        fraction = accrual_fraction(previous_date, due_date, convention)
        interest_due = round_money(balance * rate * fraction)
        payable = balance - balloon

        if installment_no == term:
            # Final installment: clear the exact remaining balance down to the balloon
            principal_due = payable
        else:
            if terms.loan_type == ANNUITY:
                principal_due = round_money(level - interest_due)
            elif terms.loan_type == FIXED_PRINCIPAL:
                principal_due = level
            else:
                principal_due = ZERO
            principal_due = min(max(principal_due, ZERO), payable)

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
        previous_date = due_date

    total_interest = sum((entry.interest_due for entry in schedule), ZERO)
    total_fees = sum((entry.fees_due for entry in schedule), ZERO)
    total_payment = sum((entry.total_due for entry in schedule), ZERO)
    if total_fees > 0:
        effective_rate = _effective_rate(principal, schedule, balloon)
    else:
        effective_rate = round_money(terms.annual_rate)

    logger.debug(
        "Generated %s schedule: %d installments, total interest %s",
        terms.loan_type,
        term,
        total_interest,
    )
    return ScheduleResult(
        schedule=schedule,
        total_interest=total_interest,
        total_payment=total_payment,
        total_fees=total_fees,
        effective_rate=effective_rate,
        level_payment=round_money(level),
    )
