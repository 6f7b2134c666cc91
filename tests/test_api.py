"""Integration tests for the JSON API"""


def test_preview_schedule(client, terms_payload):
    """Test a schedule preview"""
    response = client.post("/api/schedule", json=terms_payload)
    data = response.get_json()

    assert response.status_code == 200
    assert data["summary"]["level_payment"] == 856.07
    assert len(data["schedule"]) == 12
    assert data["schedule"][-1]["principal_balance_after"] == 0.0


def test_invalid_terms_are_400(client, terms_payload):
    """Test engine errors map to a JSON error body"""
    response = client.post("/api/schedule", json=dict(terms_payload, principal=0))

    assert response.status_code == 400
    assert response.get_json()["error"] == "InvalidTerms"


def test_unsupported_convention_is_400(client, terms_payload):
    """Test an unknown day-count tag"""
    response = client.post("/api/schedule", json=dict(terms_payload, day_count_convention="NL/365"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "UnsupportedConvention"


def test_malformed_body_is_400(client):
    """Test a body that is not a JSON object"""
    response = client.post("/api/schedule", data="not json", content_type="application/json")

    assert response.status_code == 400
    assert response.get_json()["error"] == "BadRequest"


def test_preview_early_repayment(client, terms_payload):
    """Test the early repayment preview and its 422 on bad input"""
    body = {"terms": terms_payload, "current_installment": 6, "repayment_amount": 5000, "penalty_pct": 2}
    ok = client.post("/api/early-repayment", json=body)
    bad = client.post("/api/early-repayment", json=dict(body, current_installment=13))

    assert ok.status_code == 200
    assert ok.get_json()["penalty_amount"] == 100.0
    assert len(ok.get_json()["new_schedule"]) == 6
    assert bad.status_code == 422
    assert bad.get_json()["error"] == "InvalidRepayment"


def test_simulate(client, terms_payload):
    """Test scenario comparison"""
    body = {
        "terms": terms_payload,
        "scenarios": [
            {"type": "rate_change", "name": "cut", "effective_installment": 7, "new_annual_rate": 3},
            {"type": "extra_payment", "effective_installment": 6, "amount": 2000},
            {"type": "monthly_extra_payment", "name": "plus 100", "effective_installment": 1, "amount": 100},
        ],
    }
    response = client.post("/api/simulate", json=body)
    scenarios = response.get_json()["scenarios"]

    assert response.status_code == 200
    assert [s["scenario"]["type"] for s in scenarios] == ["rate_change", "extra_payment", "monthly_extra_payment"]
    assert scenarios[1]["installments_saved"] == 0
    assert scenarios[2]["installments_saved"] == 1
    summary = response.get_json()["summary"]
    assert summary["installments_saved_range"] == {"min": 0, "max": 1}
    assert summary["best_scenario"] in {"cut", "extra_payment", "plus 100"}
    assert scenarios[0]["interest_saved"] > 0


def test_simulate_needs_scenarios(client, terms_payload):
    """Test an empty scenario list"""
    response = client.post("/api/simulate", json={"terms": terms_payload, "scenarios": []})
    assert response.status_code == 400


def test_stored_schedule_lifecycle(client, terms_payload):
    """Test store, overdue marking, payment and early repayment on one loan"""
    assert client.put("/api/loans/loan-1/schedule", json=terms_payload).status_code == 200

    view = client.get("/api/loans/loan-1/schedule?as_of=2024-04-01").get_json()
    assert [e["status"] for e in view["schedule"][:3]] == ["overdue", "overdue", "pending"]
    assert view["next_due"]["installment_no"] == 1
    assert view["principal_remaining"] == 10000.0

    paid = client.post("/api/loans/loan-1/installments/1/mark-paid")
    assert paid.get_json()["status"] == "paid"

    body = {"terms": terms_payload, "current_installment": 6, "repayment_amount": 5000, "penalty_pct": 2}
    executed = client.post("/api/loans/loan-1/early-repayment", json=body).get_json()
    assert len(executed["schedule"]) == 11
    assert executed["early_repayment"]["remaining_balance"] == 993.91
    assert len(executed["payments"]) == 1


def test_unknown_loan_is_404(client, terms_payload):
    """Test reads and writes against a loan without a schedule"""
    body = {"terms": terms_payload, "current_installment": 6, "repayment_amount": 5000}

    assert client.get("/api/loans/nope/schedule").status_code == 404
    assert client.post("/api/loans/nope/early-repayment", json=body).status_code == 404
    response = client.post("/api/loans/nope/installments/1/mark-paid")
    assert response.status_code == 404
    assert response.get_json()["error"] == "NotFound"


def test_bad_as_of_is_400(client, terms_payload):
    """Test an unparsable as_of date"""
    client.put("/api/loans/loan-1/schedule", json=terms_payload)
    assert client.get("/api/loans/loan-1/schedule?as_of=yesterday").status_code == 400
