"""Conversion between engine models and JSON-friendly dictionaries.

Inbound mappings (HTTP request bodies, scenario files) are parsed strictly
into the frozen input models; outbound helpers flatten results into plain
dictionaries with ``float`` money fields and ISO dates, ready for
``json.dumps``.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping

from .data_models import (
    PENALTY_DEDUCT,
    EarlyRepaymentRequest,
    EarlyRepaymentResult,
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
from .errors import InvalidRepayment, InvalidTerms
from .utils import parse_date, to_decimal

SCENARIO_KINDS = {
    "rate_change": RateChange,
    "extra_payment": ExtraPayment,
    "term_change": TermChange,
    "monthly_extra_payment": MonthlyExtraPayment,
}

_OPTIONAL_MONEY = ("fee_setup", "fee_monthly", "insurance_monthly", "balloon_amount")


def _require(data: Mapping[str, Any], key: str, error=InvalidTerms) -> Any:
    if key not in data or data[key] is None:
        raise error(f"Missing field: {key}")
    return data[key]


def _as_int(value: Any, key: str, error=InvalidTerms) -> int:
    if isinstance(value, bool):
        raise error(f"Field {key} must be an integer")
    if isinstance(value, int):
        return value
    try:
        number = to_decimal(value)
    except ValueError as exc:
        raise error(f"Field {key} must be an integer") from exc
    if number != number.to_integral_value():
        raise error(f"Field {key} must be an integer")
    return int(number)


def _as_decimal(value: Any, key: str, error=InvalidTerms):
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise error(f"Field {key} must be numeric") from exc


def _as_date(value: Any, key: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value))
    except ValueError as exc:
        raise InvalidTerms(f"Field {key} must be a date (YYYY-MM-DD)") from exc


def terms_from_mapping(data: Mapping[str, Any]) -> LoanTerms:
    """Build :class:`LoanTerms` from a mapping with snake_case keys."""
    if not isinstance(data, Mapping):
        raise InvalidTerms("Loan terms must be an object")
    kwargs: Dict[str, Any] = {
        "loan_type": str(data.get("loan_type", "annuity")),
        "principal": _as_decimal(_require(data, "principal"), "principal"),
        "annual_rate": _as_decimal(_require(data, "annual_rate"), "annual_rate"),
        "term_months": _as_int(_require(data, "term_months"), "term_months"),
        "start_date": _as_date(_require(data, "start_date"), "start_date"),
        "day_count_convention": str(data.get("day_count_convention", "30/360")),
    }
    for key in _OPTIONAL_MONEY:
        if data.get(key) is not None:
            kwargs[key] = _as_decimal(data[key], key)
    for key in ("fixed_monthly_payment", "fixed_principal_payment"):
        if data.get(key) is not None:
            kwargs[key] = _as_decimal(data[key], key)
    return LoanTerms(**kwargs)


def early_repayment_request_from_mapping(data: Mapping[str, Any]) -> EarlyRepaymentRequest:
    """Parse ``{"terms": {...}, "current_installment": ..., ...}``."""
    if not isinstance(data, Mapping):
        raise InvalidRepayment("Request body must be an object")
    terms = terms_from_mapping(_require(data, "terms"))
    return EarlyRepaymentRequest(
        terms=terms,
        current_installment=_as_int(
            _require(data, "current_installment", InvalidRepayment), "current_installment", InvalidRepayment
        ),
        repayment_amount=_as_decimal(
            _require(data, "repayment_amount", InvalidRepayment), "repayment_amount", InvalidRepayment
        ),
        penalty_pct=_as_decimal(data.get("penalty_pct", 0), "penalty_pct", InvalidRepayment),
        penalty_mode=str(data.get("penalty_mode", PENALTY_DEDUCT)),
    )


def scenario_from_mapping(data: Mapping[str, Any]) -> Scenario:
    """Parse one scenario tagged by ``type``."""
    if not isinstance(data, Mapping):
        raise InvalidTerms("Scenario must be an object")
    kind = data.get("type")
    if kind not in SCENARIO_KINDS:
        raise InvalidTerms(f"Unknown scenario type: {kind}")
    effective = _as_int(_require(data, "effective_installment"), "effective_installment")
    name = str(data.get("name") or kind)
    if kind == "rate_change":
        rate = _as_decimal(_require(data, "new_annual_rate"), "new_annual_rate")
        return RateChange(name=name, effective_installment=effective, new_annual_rate=rate)
    if kind in ("extra_payment", "monthly_extra_payment"):
        amount = _as_decimal(_require(data, "amount"), "amount")
        return SCENARIO_KINDS[kind](name=name, effective_installment=effective, amount=amount)
    new_term = _as_int(_require(data, "new_term_months"), "new_term_months")
    return TermChange(name=name, effective_installment=effective, new_term_months=new_term)


def scenario_to_dict(scenario: Scenario) -> Dict[str, Any]:
    base: Dict[str, Any] = {
        "name": scenario.name,
        "effective_installment": scenario.effective_installment,
    }
    if isinstance(scenario, RateChange):
        base.update(type="rate_change", new_annual_rate=float(scenario.new_annual_rate))
    elif isinstance(scenario, ExtraPayment):
        base.update(type="extra_payment", amount=float(scenario.amount))
    elif isinstance(scenario, MonthlyExtraPayment):
        base.update(type="monthly_extra_payment", amount=float(scenario.amount))
    else:
        base.update(type="term_change", new_term_months=scenario.new_term_months)
    return base


def entry_to_dict(entry: ScheduleEntry) -> Dict[str, Any]:
    return {
        "installment_no": entry.installment_no,
        "due_date": entry.due_date.isoformat(),
        "principal_due": float(entry.principal_due),
        "interest_due": float(entry.interest_due),
        "fees_due": float(entry.fees_due),
        "total_due": float(entry.total_due),
        "principal_balance_after": float(entry.principal_balance_after),
        "overpayment": float(entry.overpayment),
        "status": entry.status,
    }


def schedule_to_list(schedule: List[ScheduleEntry]) -> List[Dict[str, Any]]:
    return [entry_to_dict(entry) for entry in schedule]


def schedule_result_to_dict(result: ScheduleResult) -> Dict[str, Any]:
    return {
        "summary": {
            "total_interest": float(result.total_interest),
            "total_fees": float(result.total_fees),
            "total_payment": float(result.total_payment),
            "effective_rate": float(result.effective_rate),
            "level_payment": float(result.level_payment),
            "installments": len(result.schedule),
        },
        "schedule": schedule_to_list(result.schedule),
    }


def early_repayment_result_to_dict(result: EarlyRepaymentResult) -> Dict[str, Any]:
    return {
        "penalty_amount": float(result.penalty_amount),
        "balance_before": float(result.balance_before),
        "principal_reduction": float(result.principal_reduction),
        "total_paid_now": float(result.total_paid_now),
        "remaining_balance": float(result.remaining_balance),
        "total_saved": float(result.total_saved),
        "new_schedule": schedule_to_list(result.new_schedule),
    }


def metrics_to_dict(metrics: ScheduleMetrics) -> Dict[str, Any]:
    return {
        "total_interest": float(metrics.total_interest),
        "total_payment": float(metrics.total_payment),
        "payoff_installment": metrics.payoff_installment,
    }


def simulation_result_to_dict(result: SimulationResult) -> Dict[str, Any]:
    return {
        "scenario": scenario_to_dict(result.scenario),
        "metrics": metrics_to_dict(result.metrics),
        "baseline": metrics_to_dict(result.baseline),
        "interest_saved": float(result.interest_saved),
        "payment_saved": float(result.payment_saved),
        "installments_saved": result.installments_saved,
        "schedule": schedule_to_list(result.schedule),
    }


def simulation_summary_to_dict(summary: SimulationSummary) -> Dict[str, Any]:
    def span(values):
        low, high = values
        return {"min": float(low), "max": float(high)}

    return {
        "best_scenario": summary.best_scenario,
        "total_interest_range": span(summary.total_interest_range),
        "total_payment_range": span(summary.total_payment_range),
        "installments_saved_range": {
            "min": summary.installments_saved_range[0],
            "max": summary.installments_saved_range[1],
        },
    }
