"""Unit tests for the rate and term solvers"""

from decimal import Decimal

import pytest

from loan_engine.data_models import FIXED_PRINCIPAL, INTEREST_ONLY
from loan_engine.engine import generate
from loan_engine.errors import InvalidTerms
from loan_engine.inverse import rate_from_payment, term_from_payment


def test_rate_from_generated_annuity(annuity_terms):
    """Test the solver recovers the rate behind a generated payment"""
    payment = generate(annuity_terms).level_payment
    assert rate_from_payment(Decimal("10000"), payment, 12) == Decimal("5.00")


def test_rate_strips_monthly_fees():
    """Test fees included in the payment are ignored"""
    rate = rate_from_payment(Decimal("10000"), Decimal("866.07"), 12, monthly_fees=Decimal("10"))
    assert rate == Decimal("5.00")


def test_rate_for_other_loan_types():
    """Test interest-only and fixed-principal inversions"""
    assert rate_from_payment(Decimal("10000"), Decimal("41.67"), 12, INTEREST_ONLY) == Decimal("5.00")
    assert rate_from_payment(Decimal("10000"), Decimal("855.90"), 12, FIXED_PRINCIPAL) == Decimal("5.00")


def test_rate_zero_when_payment_only_covers_principal():
    """Test a payment of exactly P / n means no interest"""
    assert rate_from_payment(Decimal("1200"), Decimal("100"), 12) == Decimal("0.00")


def test_rate_payment_too_low():
    """Test a payment that cannot repay the principal is rejected"""
    with pytest.raises(InvalidTerms):
        rate_from_payment(Decimal("10000"), Decimal("500"), 12)
    with pytest.raises(InvalidTerms):
        rate_from_payment(Decimal("10000"), Decimal("10"), 12, monthly_fees=Decimal("10"))


def test_term_from_payment():
    """Test the term behind a rounded annuity payment"""
    assert term_from_payment(Decimal("10000"), Decimal("5"), Decimal("856.07")) == 12
    assert term_from_payment(Decimal("10000"), Decimal("5"), Decimal("900")) == 12


def test_term_zero_rate_and_fixed_principal():
    """Test simple divisions for zero rate and fixed principal"""
    assert term_from_payment(Decimal("1200"), Decimal("0"), Decimal("100")) == 12
    assert term_from_payment(Decimal("1200"), Decimal("0"), Decimal("110")) == 11
    assert term_from_payment(Decimal("10000"), Decimal("5"), Decimal("855.90"), FIXED_PRINCIPAL) == 12


def test_term_rejections():
    """Test non-amortizing payments and interest-only loans"""
    with pytest.raises(InvalidTerms):
        term_from_payment(Decimal("10000"), Decimal("12"), Decimal("50"))
    with pytest.raises(InvalidTerms):
        term_from_payment(Decimal("10000"), Decimal("5"), Decimal("41.67"), INTEREST_ONLY)
    with pytest.raises(InvalidTerms):
        term_from_payment(Decimal("10000"), Decimal("-1"), Decimal("900"))
