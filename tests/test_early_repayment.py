"""Unit tests for early repayment"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from loan_engine.data_models import PENALTY_SURCHARGE, EarlyRepaymentRequest
from loan_engine.early_repayment import calculate_early_repayment
from loan_engine.errors import InvalidRepayment


def _request(terms, installment=6, amount="5000", pct="2", **kwargs):
    return EarlyRepaymentRequest(
        terms=terms,
        current_installment=installment,
        repayment_amount=Decimal(amount),
        penalty_pct=Decimal(pct),
        **kwargs,
    )


def test_partial_repayment_penalty_deducted(annuity_terms):
    """Test 5000 with a 2 % penalty at installment 6"""
    result = calculate_early_repayment(_request(annuity_terms))

    assert result.penalty_amount == Decimal("100.00")
    assert result.balance_before == Decimal("5893.91")
    assert result.principal_reduction == Decimal("4900.00")
    assert result.total_paid_now == Decimal("5000.00")
    assert result.remaining_balance == result.balance_before - Decimal("4900.00")
    assert [e.installment_no for e in result.new_schedule] == [1, 2, 3, 4, 5, 6]


def test_regenerated_schedule_continues_original_dates(annuity_terms):
    """Test the new schedule starts where installment 6 was due"""
    result = calculate_early_repayment(_request(annuity_terms))

    assert result.new_schedule[0].due_date == date(2024, 7, 15)
    assert result.new_schedule[-1].principal_balance_after == Decimal("0.00")
    assert sum(e.principal_due for e in result.new_schedule) == result.remaining_balance
    assert result.total_saved > 0


def test_penalty_surcharge_mode(annuity_terms):
    """Test the full amount reduces principal and the penalty is paid on top"""
    result = calculate_early_repayment(_request(annuity_terms, penalty_mode=PENALTY_SURCHARGE))

    assert result.penalty_amount == Decimal("100.00")
    assert result.principal_reduction == Decimal("5000.00")
    assert result.total_paid_now == Decimal("5100.00")
    assert result.remaining_balance == Decimal("893.91")


def test_surcharge_saves_more_than_deduct(annuity_terms):
    """Test a larger principal reduction saves more interest"""
    deduct = calculate_early_repayment(_request(annuity_terms))
    surcharge = calculate_early_repayment(_request(annuity_terms, penalty_mode=PENALTY_SURCHARGE))
    assert surcharge.total_saved > deduct.total_saved


def test_full_repayment_discharges_loan(annuity_terms):
    """Test repaying the whole balance leaves nothing"""
    result = calculate_early_repayment(_request(annuity_terms, amount="5893.91", pct="0"))

    assert result.remaining_balance == Decimal("0.00")
    assert result.new_schedule == []
    assert result.total_saved == Decimal("98.63")


def test_overpayment_is_capped_at_balance(annuity_terms):
    """Test paying more than owed only clears the balance"""
    result = calculate_early_repayment(_request(annuity_terms, amount="50000", pct="0"))

    assert result.principal_reduction == Decimal("5893.91")
    assert result.remaining_balance == Decimal("0.00")


def test_repayment_before_first_installment(annuity_terms):
    """Test installment 1 uses the full principal"""
    result = calculate_early_repayment(_request(annuity_terms, installment=1, amount="1000", pct="0"))

    assert result.balance_before == Decimal("10000.00")
    assert result.remaining_balance == Decimal("9000.00")
    assert len(result.new_schedule) == 11
    assert result.new_schedule[0].due_date == date(2024, 2, 15)


def test_last_installment_keeps_one_period(annuity_terms):
    """Test a partial repayment at the final installment still leaves one"""
    result = calculate_early_repayment(_request(annuity_terms, installment=12, amount="100", pct="0"))
    assert len(result.new_schedule) == 1


def test_setup_fee_not_charged_again(annuity_terms):
    """Test the regenerated schedule carries only the monthly fees"""
    terms = replace(annuity_terms, fee_setup=Decimal("100"), fee_monthly=Decimal("5"))
    result = calculate_early_repayment(_request(terms))
    assert all(e.fees_due == Decimal("5.00") for e in result.new_schedule)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount": "0"},
        {"amount": "-10"},
        {"pct": "-1"},
        {"installment": 0},
        {"installment": 13},
        {"penalty_mode": "waive"},
    ],
)
def test_invalid_requests_rejected(annuity_terms, kwargs):
    """Test bad amounts, penalties and installments raise InvalidRepayment"""
    with pytest.raises(InvalidRepayment):
        calculate_early_repayment(_request(annuity_terms, **kwargs))


def test_balloon_loan_tail_ends_at_balloon(annuity_terms):
    """Test the regenerated schedule amortizes down to the balloon only"""
    terms = replace(annuity_terms, balloon_amount=Decimal("2000"))
    result = calculate_early_repayment(_request(terms, amount="1000", pct="0"))

    assert result.remaining_balance == result.balance_before - Decimal("1000.00")
    assert result.new_schedule[-1].principal_balance_after == Decimal("2000.00")
    assert sum(e.principal_due for e in result.new_schedule) == result.remaining_balance - Decimal("2000.00")


def test_balloon_capped_at_remaining_balance(annuity_terms):
    """Test a balance pushed below the balloon keeps it as the new balloon"""
    terms = replace(annuity_terms, balloon_amount=Decimal("2000"))
    before = calculate_early_repayment(_request(terms, amount="1", pct="0")).balance_before
    result = calculate_early_repayment(_request(terms, amount=str(before - Decimal("500")), pct="0"))

    assert result.remaining_balance == Decimal("500.00")
    assert all(e.principal_due == Decimal("0.00") for e in result.new_schedule)
    assert all(e.principal_balance_after == Decimal("500.00") for e in result.new_schedule)
