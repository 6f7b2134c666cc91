"""Unit tests for request parsing and result serialization"""

import json
from datetime import date
from decimal import Decimal

import pytest

from loan_engine.data_models import ExtraPayment, MonthlyExtraPayment, TermChange
from loan_engine.engine import generate
from loan_engine.errors import InvalidRepayment, InvalidTerms
from loan_engine.serialization import (
    early_repayment_request_from_mapping,
    scenario_from_mapping,
    scenario_to_dict,
    schedule_result_to_dict,
    simulation_summary_to_dict,
    terms_from_mapping,
)
from loan_engine.simulator import simulate, summarize


def test_terms_from_mapping(terms_payload, annuity_terms):
    """Test a JSON body becomes the same terms as the fixture"""
    terms = terms_from_mapping(dict(terms_payload, fee_monthly="5.50"))

    assert terms.start_date == date(2024, 1, 15)
    assert terms.principal == annuity_terms.principal
    assert terms.fee_monthly == Decimal("5.50")


@pytest.mark.parametrize(
    "changes",
    [
        {"principal": None},
        {"term_months": 12.5},
        {"term_months": True},
        {"annual_rate": "five"},
        {"start_date": "15/01/2024"},
    ],
)
def test_terms_from_mapping_rejects_bad_fields(terms_payload, changes):
    """Test missing or malformed fields raise InvalidTerms"""
    with pytest.raises(InvalidTerms):
        terms_from_mapping(dict(terms_payload, **changes))


def test_early_repayment_request_errors(terms_payload):
    """Test repayment fields raise InvalidRepayment"""
    with pytest.raises(InvalidRepayment):
        early_repayment_request_from_mapping({"terms": terms_payload, "repayment_amount": 100})
    request = early_repayment_request_from_mapping(
        {"terms": terms_payload, "current_installment": "6", "repayment_amount": "5000"}
    )
    assert request.current_installment == 6
    assert request.penalty_pct == 0


def test_scenario_mapping():
    """Test tagged scenarios parse into their classes"""
    extra = scenario_from_mapping({"type": "extra_payment", "effective_installment": 3, "amount": 500})
    term = scenario_from_mapping({"type": "term_change", "effective_installment": 2, "new_term_months": 24})

    assert extra == ExtraPayment("extra_payment", 3, Decimal(500))
    assert isinstance(term, TermChange)
    assert scenario_to_dict(term)["type"] == "term_change"
    monthly = scenario_from_mapping(
        {"type": "monthly_extra_payment", "name": "plus", "effective_installment": 1, "amount": "100"}
    )
    assert monthly == MonthlyExtraPayment("plus", 1, Decimal(100))
    assert scenario_to_dict(monthly) == {
        "name": "plus",
        "effective_installment": 1,
        "type": "monthly_extra_payment",
        "amount": 100.0,
    }
    with pytest.raises(InvalidTerms):
        scenario_from_mapping({"type": "holiday", "effective_installment": 2})


def test_schedule_result_is_json_ready(annuity_terms):
    """Test the serialised result survives json.dumps"""
    data = schedule_result_to_dict(generate(annuity_terms))
    text = json.dumps(data)

    assert data["summary"]["level_payment"] == 856.07
    assert '"due_date": "2024-02-15"' in text


def test_simulation_summary_to_dict(annuity_terms):
    """Test the comparison summary serialises ranges as min and max"""
    results = simulate(
        annuity_terms,
        [
            ExtraPayment("lump", 6, Decimal(2000)),
            MonthlyExtraPayment("plus", 1, Decimal(100)),
        ],
    )
    data = simulation_summary_to_dict(summarize(results))

    assert set(data) == {
        "best_scenario",
        "total_interest_range",
        "total_payment_range",
        "installments_saved_range",
    }
    assert data["installments_saved_range"] == {"min": 0, "max": 1}
    assert data["total_interest_range"]["min"] < data["total_interest_range"]["max"]
    assert json.loads(json.dumps(data)) == data
