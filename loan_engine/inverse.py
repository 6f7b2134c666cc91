"""Inverse solvers: recover the rate or the term from a known payment.

Useful when a borrower knows what the bank charges every month but not the
rate or how long the loan will run. Monthly fees are stripped from the
payment first; the remainder has to cover interest and principal.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal

from scipy.optimize import brentq

from .data_models import ANNUITY, FIXED_PRINCIPAL, INTEREST_ONLY, LOAN_TYPES
from .engine import annuity_payment
from .errors import InvalidTerms
from .utils import ZERO, Number, decimal_context, round_money, to_decimal


def _net_payment(monthly_payment: Number, monthly_fees: Number) -> Decimal:
    net = to_decimal(monthly_payment) - to_decimal(monthly_fees)
    if net <= 0:
        raise InvalidTerms("Monthly payment must be larger than the monthly fees")
    return net


def _check_common(principal: Decimal, loan_type: str) -> None:
    if principal <= 0:
        raise InvalidTerms("Principal must be positive")
    if loan_type not in LOAN_TYPES:
        raise InvalidTerms(f"Unknown loan type: {loan_type}")


@decimal_context
def rate_from_payment(
    principal: Number,
    monthly_payment: Number,
    term_months: int,
    loan_type: str = ANNUITY,
    monthly_fees: Number = ZERO,
) -> Decimal:
    """Return the nominal annual rate (percent) implied by a monthly payment.

    For annuities the annuity formula is inverted numerically with Brent's
    method. A fixed-principal payment is read as the average installment over
    the term; an interest-only payment as pure interest.

    Raises
    ------
    InvalidTerms
        If the payment does not exceed the fees or cannot amortize the loan.
    """
    principal = to_decimal(principal)
    _check_common(principal, loan_type)
    if term_months <= 0:
        raise InvalidTerms("Term must be positive")
    net = _net_payment(monthly_payment, monthly_fees)
    term = Decimal(term_months)

    if loan_type == INTEREST_ONLY:
        return round_money(net / principal * 12 * 100)

    if loan_type == FIXED_PRINCIPAL:
        # total interest is r * P * (n + 1) / 2 spread over n installments
        average_interest = net - principal / term
        if average_interest < 0:
            raise InvalidTerms("Payment is too low to repay the principal")
        monthly = average_interest / (principal * (term + 1) / (2 * term))
        return round_money(monthly * 12 * 100)

    if net * term < principal:
        raise InvalidTerms("Payment is too low to repay the principal")
    if net * term == principal:
        return round_money(ZERO)

    amount = float(principal)
    target = float(net)

    def objective(monthly_rate: float) -> float:
        factor = (1.0 + monthly_rate) ** term_months
        return amount * monthly_rate * factor / (factor - 1.0) - target

    upper = 1.0
    while objective(upper) < 0:
        upper *= 2
    try:
        monthly = brentq(objective, 1e-12, upper, xtol=1e-14, maxiter=200)
    except ValueError as exc:
        raise InvalidTerms(f"Could not solve for the rate: {exc}") from exc
    return round_money(Decimal(repr(monthly * 12 * 100)))


@decimal_context
def term_from_payment(
    principal: Number,
    annual_rate: Number,
    monthly_payment: Number,
    loan_type: str = ANNUITY,
    monthly_fees: Number = ZERO,
) -> int:
    """Return the number of monthly installments a payment needs.

    The annuity case uses the closed form ``n = -ln(1 - P*r/M) / ln(1 + r)``
    rounded up; the last installment of such a loan is smaller than the rest.

    Raises
    ------
    InvalidTerms
        If the payment cannot amortize the loan, or for interest-only loans,
        whose term cannot be derived from the payment.
    """
    principal = to_decimal(principal)
    _check_common(principal, loan_type)
    if loan_type == INTEREST_ONLY:
        raise InvalidTerms("The term of an interest-only loan cannot be derived from its payment")
    rate = to_decimal(annual_rate)
    if rate < 0:
        raise InvalidTerms("Annual rate cannot be negative")
    net = _net_payment(monthly_payment, monthly_fees)
    monthly_rate = rate / Decimal(1200)

    if monthly_rate == 0:
        return int((principal / net).to_integral_value(rounding=ROUND_CEILING))

    if loan_type == FIXED_PRINCIPAL:
        slice_ = net - principal * monthly_rate / 2
        if slice_ <= 0:
            raise InvalidTerms("Payment is too low to repay the principal")
        return int((principal / slice_).to_integral_value(rounding=ROUND_CEILING))

    remainder = 1 - principal * monthly_rate / net
    if remainder <= 0:
        raise InvalidTerms("Payment does not cover the interest; the loan never amortizes")
    periods = -remainder.ln() / (1 + monthly_rate).ln()
    term = int(periods.to_integral_value(rounding=ROUND_CEILING))
    # a payment rounded down to cents lands just past a whole term
    if term > 1 and annuity_payment(principal, monthly_rate, term - 1) <= net + Decimal("0.01"):
        term -= 1
    return term
