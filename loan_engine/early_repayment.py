"""Early (partial or full) repayment of a loan.

The calculator replays the original schedule to find the balance owed just
before the next unpaid installment, applies the lump sum, and regenerates the
remaining life of the loan from the new balance. The lump sum takes the place
of installment ``current_installment``, so the regenerated schedule has
``term_months - current_installment`` installments and starts on the due date
of the last paid installment.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
import logging

from .data_models import (
    PENALTY_DEDUCT,
    PENALTY_MODES,
    EarlyRepaymentRequest,
    EarlyRepaymentResult,
    LoanTerms,
    ScheduleResult,
)
from .engine import generate
from .errors import InvalidRepayment
from .utils import ZERO, decimal_context, round_money

logger = logging.getLogger(__name__)


def _validate_request(request: EarlyRepaymentRequest) -> None:
    if request.repayment_amount <= 0:
        raise InvalidRepayment("Repayment amount must be positive")
    if request.penalty_pct < 0:
        raise InvalidRepayment("Penalty percentage cannot be negative")
    if request.penalty_mode not in PENALTY_MODES:
        raise InvalidRepayment(f"Unknown penalty mode: {request.penalty_mode}")
    installment = request.current_installment
    if isinstance(installment, bool) or not isinstance(installment, int):
        raise InvalidRepayment("Installment number must be an integer")
    if not 1 <= installment <= request.terms.term_months:
        raise InvalidRepayment(
            f"Installment {installment} is outside 1..{request.terms.term_months}"
        )


def balance_before(terms: LoanTerms, original: ScheduleResult, installment: int) -> Decimal:
    """Principal outstanding immediately before ``installment`` is paid."""
    if installment == 1:
        return round_money(terms.principal)
    return original.schedule[installment - 2].principal_balance_after


@decimal_context
def calculate_early_repayment(request: EarlyRepaymentRequest) -> EarlyRepaymentResult:
    """Compute penalty, new balance and the regenerated remaining schedule.

    Parameters
    ----------
    request: EarlyRepaymentRequest
        Original terms, next unpaid installment, lump sum and penalty.

    Returns
    -------
    EarlyRepaymentResult
        ``new_schedule`` is empty when the lump sum discharges the loan.

    Raises
    ------
    InvalidRepayment
        For a non-positive amount, a negative penalty, an unknown penalty
        mode or an installment outside ``1..term_months``.
    """
    _validate_request(request)
    terms = request.terms
    current = request.current_installment
    original = generate(terms)
    before = balance_before(terms, original, current)

    penalty_amount = round_money(request.repayment_amount * request.penalty_pct / Decimal(100))
    if request.penalty_mode == PENALTY_DEDUCT:
        reduction = round_money(request.repayment_amount) - penalty_amount
        paid_now = round_money(request.repayment_amount)
    else:
        reduction = round_money(request.repayment_amount)
        paid_now = reduction + penalty_amount
    reduction = min(max(reduction, ZERO), before)
    remaining = before - reduction

    original_interest = sum(
        (entry.interest_due for entry in original.schedule[current - 1 :]), ZERO
    )

    if remaining == 0:
        logger.debug("Early repayment at installment %d discharges the loan", current)
        return EarlyRepaymentResult(
            penalty_amount=penalty_amount,
            remaining_balance=ZERO,
            new_schedule=[],
            total_saved=original_interest,
            balance_before=before,
            principal_reduction=reduction,
            total_paid_now=paid_now,
        )

    if current == 1:
        start_date = terms.start_date
    else:
        start_date = original.schedule[current - 2].due_date
    new_terms = replace(
        terms,
        principal=remaining,
        term_months=max(terms.term_months - current, 1),
        start_date=start_date,
        fee_setup=ZERO,
        balloon_amount=min(terms.balloon_amount, remaining),
        fixed_monthly_payment=None,
    )
    regenerated = generate(new_terms)
    total_saved = original_interest - regenerated.total_interest

    logger.debug(
        "Early repayment at installment %d: balance %s -> %s, %d installments left",
        current,
        before,
        remaining,
        len(regenerated.schedule),
    )
    return EarlyRepaymentResult(
        penalty_amount=penalty_amount,
        remaining_balance=remaining,
        new_schedule=regenerated.schedule,
        total_saved=total_saved,
        balance_before=before,
        principal_reduction=reduction,
        total_paid_now=paid_now,
    )
