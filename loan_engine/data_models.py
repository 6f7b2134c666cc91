"""Data models for the amortization engine.

This module defines dataclasses representing the different entities used by
the engine: the static loan terms, individual schedule entries, the result of
a schedule generation, early-repayment requests and results, and the closed
set of what-if scenarios understood by the simulator. Inputs are frozen so a
caller can share them between threads without copying.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from .utils import ZERO, to_decimal

ANNUITY = "annuity"
FIXED_PRINCIPAL = "fixed_principal"
INTEREST_ONLY = "interest_only"

LOAN_TYPES = (ANNUITY, FIXED_PRINCIPAL, INTEREST_ONLY)

PENALTY_DEDUCT = "deduct"
PENALTY_SURCHARGE = "surcharge"

PENALTY_MODES = (PENALTY_DEDUCT, PENALTY_SURCHARGE)


@dataclass(frozen=True)
class LoanTerms:
    """Static terms of a loan.

    Attributes
    ----------
    loan_type: str
        ``"annuity"``, ``"fixed_principal"`` or ``"interest_only"``.
    principal: Decimal
        Amount borrowed. Must be positive.
    annual_rate: Decimal
        Nominal annual interest rate in percent (``5`` means 5 %).
    term_months: int
        Number of monthly installments.
    start_date: date
        Disbursement date. The first installment falls due one month later.
    day_count_convention: str
        ``"30/360"``, ``"ACT/360"``, ``"ACT/365"`` or ``"ACT/ACT"``.
    fee_setup: Decimal
        One-time fee charged with the first installment.
    fee_monthly, insurance_monthly: Decimal
        Charged with every installment.
    balloon_amount: Decimal
        Principal left outstanding after the final installment.
    fixed_monthly_payment: Decimal, optional
        Annuity only: use this level payment instead of the formula value.
    fixed_principal_payment: Decimal, optional
        Fixed-principal only: use this principal slice instead of
        ``(principal - balloon_amount) / term_months``.
    """

    loan_type: str
    principal: Decimal
    annual_rate: Decimal
    term_months: int
    start_date: date
    day_count_convention: str = "30/360"
    fee_setup: Decimal = ZERO
    fee_monthly: Decimal = ZERO
    insurance_monthly: Decimal = ZERO
    balloon_amount: Decimal = ZERO
    fixed_monthly_payment: Optional[Decimal] = None
    fixed_principal_payment: Optional[Decimal] = None

    def __post_init__(self) -> None:
        for name in (
            "principal",
            "annual_rate",
            "fee_setup",
            "fee_monthly",
            "insurance_monthly",
            "balloon_amount",
        ):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        for name in ("fixed_monthly_payment", "fixed_principal_payment"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))

    @property
    def monthly_fees(self) -> Decimal:
        return self.fee_monthly + self.insurance_monthly


@dataclass
class ScheduleEntry:
    """One installment of an amortization schedule.

    ``total_due`` is always ``principal_due + interest_due + fees_due``.
    ``overpayment`` is out-of-band principal paid at the start of this
    installment's accrual period; it is not part of ``total_due`` but is
    already reflected in ``principal_balance_after``. The engine only ever
    emits ``status="pending"``; ``paid`` and ``overdue`` belong to whoever
    persists the schedule.
    """

    installment_no: int
    due_date: date
    principal_due: Decimal
    interest_due: Decimal
    fees_due: Decimal
    total_due: Decimal
    principal_balance_after: Decimal
    status: str = "pending"
    overpayment: Decimal = ZERO


@dataclass
class ScheduleResult:
    """Output of :func:`loan_engine.engine.generate`."""

    schedule: List[ScheduleEntry]
    total_interest: Decimal
    total_payment: Decimal
    total_fees: Decimal
    effective_rate: Decimal
    level_payment: Decimal


@dataclass(frozen=True)
class EarlyRepaymentRequest:
    """A lump-sum repayment against a partially amortized loan.

    ``current_installment`` is the next unpaid installment (1-based).
    ``penalty_mode`` decides how the penalty interacts with the lump sum:
    ``"deduct"`` takes it out of the amount applied to principal,
    ``"surcharge"`` applies the full amount and charges the penalty on top.
    """

    terms: LoanTerms
    current_installment: int
    repayment_amount: Decimal
    penalty_pct: Decimal = ZERO
    penalty_mode: str = PENALTY_DEDUCT

    def __post_init__(self) -> None:
        object.__setattr__(self, "repayment_amount", to_decimal(self.repayment_amount))
        object.__setattr__(self, "penalty_pct", to_decimal(self.penalty_pct))


@dataclass
class EarlyRepaymentResult:
    """Outcome of an early repayment.

    ``new_schedule`` covers only the remaining life of the loan and is
    numbered from 1; offsetting it back into the original numbering is the
    caller's job. ``total_saved`` is the interest avoided compared with the
    unmodified remaining schedule.
    """

    penalty_amount: Decimal
    remaining_balance: Decimal
    new_schedule: List[ScheduleEntry]
    total_saved: Decimal
    balance_before: Decimal
    principal_reduction: Decimal
    total_paid_now: Decimal


@dataclass(frozen=True)
class RateChange:
    """Switch to ``new_annual_rate`` from ``effective_installment`` onwards."""

    name: str
    effective_installment: int
    new_annual_rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "new_annual_rate", to_decimal(self.new_annual_rate))


@dataclass(frozen=True)
class ExtraPayment:
    """One-off principal reduction applied at ``effective_installment``."""

    name: str
    effective_installment: int
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True)
class TermChange:
    """Re-amortize so the loan ends after ``new_term_months`` installments."""

    name: str
    effective_installment: int
    new_term_months: int


@dataclass(frozen=True)
class MonthlyExtraPayment:
    """Pay ``amount`` of extra principal with every installment from ``effective_installment`` on.

    The regular payment is unchanged, so the loan ends early.
    """

    name: str
    effective_installment: int
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


Scenario = Union[RateChange, ExtraPayment, TermChange, MonthlyExtraPayment]


@dataclass(frozen=True)
class ScheduleMetrics:
    total_interest: Decimal
    total_payment: Decimal
    payoff_installment: int


@dataclass
class SimulationResult:
    """A scenario's regenerated schedule with its metrics and the baseline's."""

    scenario: Scenario
    schedule: List[ScheduleEntry]
    metrics: ScheduleMetrics
    baseline: ScheduleMetrics = field(repr=False)

    @property
    def interest_saved(self) -> Decimal:
        return self.baseline.total_interest - self.metrics.total_interest

    @property
    def payment_saved(self) -> Decimal:
        return self.baseline.total_payment - self.metrics.total_payment

    @property
    def installments_saved(self) -> int:
        return self.baseline.payoff_installment - self.metrics.payoff_installment


@dataclass(frozen=True)
class SimulationSummary:
    """Cross-scenario comparison.

    ``best_scenario`` is the name of the scenario with the lowest total
    payment (the first one listed on a tie). Each range is ``(min, max)``
    over all scenarios.
    """

    best_scenario: str
    total_interest_range: Tuple[Decimal, Decimal]
    total_payment_range: Tuple[Decimal, Decimal]
    installments_saved_range: Tuple[int, int]
