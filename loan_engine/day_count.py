"""Day-count conventions.

Converts a date interval into the fraction of a year over which interest
accrues. All fractions are ``Decimal`` so that interest computed from them
is reproducible to the last digit.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Dict

from .errors import InvalidDateRange, UnsupportedConvention
from .utils import decimal_context

THIRTY_360 = "30/360"
ACT_360 = "ACT/360"
ACT_365 = "ACT/365"
ACT_ACT = "ACT/ACT"

DAY_COUNT_CONVENTIONS = (THIRTY_360, ACT_360, ACT_365, ACT_ACT)

_ALIASES: Dict[str, str] = {
    "30E/360": THIRTY_360,
    "30/360E": THIRTY_360,
    "ACT/365F": ACT_365,
    "ACT/365 FIXED": ACT_365,
    "ACTUAL/360": ACT_360,
    "ACTUAL/365": ACT_365,
    "ACTUAL/ACTUAL": ACT_ACT,
}


def normalize_convention(convention: str) -> str:
    """Return the canonical tag for ``convention``.

    Matching is case-insensitive and accepts a few common aliases
    (``30E/360``, ``ACT/365F``...).

    Raises
    ------
    UnsupportedConvention
        If the tag is not recognised.
    """
    if not isinstance(convention, str):
        raise UnsupportedConvention(convention)
    tag = convention.strip().upper()
    if tag in DAY_COUNT_CONVENTIONS:
        return tag
    if tag in _ALIASES:
        return _ALIASES[tag]
    raise UnsupportedConvention(convention)


def _thirty_360(start: date, end: date) -> Decimal:
    d1 = min(start.day, 30)
    d2 = min(end.day, 30)
    days = 360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)
    return Decimal(days) / Decimal(360)


def _actual_actual(start: date, end: date) -> Decimal:
    # each calendar year contributes its own days over its own length
    fraction = Decimal(0)
    cursor = start
    while cursor < end:
        year_end = date(cursor.year + 1, 1, 1)
        segment_end = min(year_end, end)
        year_length = 366 if calendar.isleap(cursor.year) else 365
        fraction += Decimal((segment_end - cursor).days) / Decimal(year_length)
        cursor = segment_end
    return fraction


@decimal_context
def accrual_fraction(period_start: date, period_end: date, convention: str) -> Decimal:
    """Return the year fraction between two dates under ``convention``.

    Parameters
    ----------
    period_start: date
        First day of the accrual period (inclusive).
    period_end: date
        Last day of the accrual period (exclusive).
    convention: str
        One of ``30/360``, ``ACT/360``, ``ACT/365`` or ``ACT/ACT``.

    Returns
    -------
    Decimal
        The accrual fraction, always greater than zero.

    Raises
    ------
    InvalidDateRange
        If ``period_end`` is not strictly after ``period_start``, or if both
        dates fall on the same truncated 30/360 day (the 30th and the 31st).
    UnsupportedConvention
        If the convention tag is unknown.
    """
    tag = normalize_convention(convention)
    if period_end <= period_start:
        raise InvalidDateRange(
            f"Period end {period_end.isoformat()} must be after start {period_start.isoformat()}",
            period_start,
            period_end,
        )
    if tag == THIRTY_360:
        fraction = _thirty_360(period_start, period_end)
        if fraction <= 0:
            raise InvalidDateRange(
                f"Period {period_start.isoformat()} to {period_end.isoformat()} is empty under 30/360",
                period_start,
                period_end,
            )
        return fraction
    days = Decimal((period_end - period_start).days)
    if tag == ACT_360:
        return days / Decimal(360)
    if tag == ACT_365:
        return days / Decimal(365)
    return _actual_actual(period_start, period_end)


@decimal_context
def nominal_month_fraction(convention: str) -> Decimal:
    """Year fraction of one nominal month, used by the annuity formula.

    ACT/360 counts an average month of 365/12 days over a 360-day year;
    the other conventions treat a nominal month as exactly 1/12.
    """
    tag = normalize_convention(convention)
    if tag == THIRTY_360:
        return Decimal(30) / Decimal(360)
    if tag == ACT_360:
        return Decimal(365) / Decimal(12) / Decimal(360)
    return Decimal(1) / Decimal(12)
