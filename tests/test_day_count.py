"""Unit tests for day-count conventions"""

from datetime import date
from decimal import Decimal

import pytest

from loan_engine.day_count import accrual_fraction, nominal_month_fraction, normalize_convention
from loan_engine.errors import InvalidDateRange, UnsupportedConvention


def test_thirty_360_full_month():
    """Test a whole month is exactly 30/360"""
    fraction = accrual_fraction(date(2024, 1, 15), date(2024, 2, 15), "30/360")
    assert fraction == Decimal(30) / Decimal(360)


def test_thirty_360_truncates_31st():
    """Test the 31st counts as the 30th at both ends"""
    fraction = accrual_fraction(date(2024, 1, 31), date(2024, 3, 31), "30/360")
    assert fraction == Decimal(60) / Decimal(360)


def test_thirty_360_same_truncated_day_rejected():
    """Test 30th to 31st is an empty period under 30/360"""
    with pytest.raises(InvalidDateRange) as excinfo:
        accrual_fraction(date(2024, 1, 30), date(2024, 1, 31), "30/360")
    assert excinfo.value.end == date(2024, 1, 31)
    assert accrual_fraction(date(2024, 1, 30), date(2024, 1, 31), "ACT/365") == Decimal(1) / Decimal(365)


def test_actual_360_and_365():
    """Test actual conventions divide the real day count"""
    start, end = date(2024, 1, 15), date(2024, 2, 15)
    assert accrual_fraction(start, end, "ACT/360") == Decimal(31) / Decimal(360)
    assert accrual_fraction(start, end, "ACT/365") == Decimal(31) / Decimal(365)


def test_actual_actual_splits_calendar_years():
    """Test days in a leap year count over 366"""
    fraction = accrual_fraction(date(2023, 12, 15), date(2024, 1, 15), "ACT/ACT")
    assert fraction == Decimal(17) / Decimal(365) + Decimal(14) / Decimal(366)


def test_actual_actual_whole_leap_year():
    """Test a full leap year is exactly one"""
    assert accrual_fraction(date(2024, 1, 1), date(2025, 1, 1), "ACT/ACT") == 1


def test_end_not_after_start_rejected():
    """Test empty and reversed intervals raise InvalidDateRange"""
    with pytest.raises(InvalidDateRange):
        accrual_fraction(date(2024, 1, 15), date(2024, 1, 15), "30/360")
    with pytest.raises(InvalidDateRange) as excinfo:
        accrual_fraction(date(2024, 2, 15), date(2024, 1, 15), "ACT/365")
    assert excinfo.value.start == date(2024, 2, 15)


def test_normalize_aliases_and_case():
    """Test aliases and lowercase tags map to canonical names"""
    assert normalize_convention("30e/360") == "30/360"
    assert normalize_convention("act/365f") == "ACT/365"
    assert normalize_convention(" Actual/Actual ") == "ACT/ACT"


def test_unknown_convention():
    """Test an unknown tag raises UnsupportedConvention"""
    with pytest.raises(UnsupportedConvention) as excinfo:
        accrual_fraction(date(2024, 1, 1), date(2024, 2, 1), "BUS/252")
    assert excinfo.value.convention == "BUS/252"


def test_nominal_month_fraction():
    """Test the nominal month used by the annuity formula"""
    assert nominal_month_fraction("30/360") == Decimal(30) / Decimal(360)
    assert nominal_month_fraction("ACT/365") == Decimal(1) / Decimal(12)
    assert nominal_month_fraction("ACT/360") == Decimal(365) / Decimal(12) / Decimal(360)
