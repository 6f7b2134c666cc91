import logging
import os
from datetime import date

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, NotFound

from loan_engine.early_repayment import calculate_early_repayment
from loan_engine.engine import generate
from loan_engine.errors import InvalidRepayment, LoanEngineError
from loan_engine.logging_setup import setup_logging
from loan_engine.serialization import (
    early_repayment_request_from_mapping,
    early_repayment_result_to_dict,
    entry_to_dict,
    scenario_from_mapping,
    schedule_result_to_dict,
    schedule_to_list,
    simulation_result_to_dict,
    simulation_summary_to_dict,
    terms_from_mapping,
)
from loan_engine.simulator import simulate, summarize
from loan_engine.utils import parse_date
from loan_engine_web.schedule_store import create_store_from_env

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {InvalidRepayment.kind: 422}


def _config_from_env() -> dict:
    workers = os.environ.get("SIMULATION_MAX_WORKERS", "").strip()
    return {
        "SCHEDULE_DATABASE_URL": os.environ.get("SCHEDULE_DATABASE_URL"),
        "LOAN_ENGINE_LOG_LEVEL": os.environ.get("LOAN_ENGINE_LOG_LEVEL", "INFO"),
        "SIMULATION_MAX_WORKERS": int(workers) if workers else None,
    }


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _store():
    return current_app.extensions["schedule_store"]


def _require_schedule(loan_id: str) -> None:
    if not _store().has_schedule(loan_id):
        raise NotFound(f"No schedule stored for loan {loan_id}")


def _loan_view(loan_id: str) -> dict:
    store = _store()
    next_due = store.next_due_installment(loan_id)
    return {
        "loan_id": loan_id,
        "schedule": schedule_to_list(store.list_schedule(loan_id)),
        "next_due": entry_to_dict(next_due) if next_due else None,
        "principal_remaining": float(store.principal_remaining(loan_id)),
    }


def handle_engine_error(exc: LoanEngineError):
    status = STATUS_BY_KIND.get(exc.kind, 400)
    logger.info("Rejected request: %s: %s", exc.kind, exc)
    return jsonify({"error": exc.kind, "message": str(exc)}), status


def handle_bad_request(exc: BadRequest):
    return jsonify({"error": "BadRequest", "message": exc.description}), 400


def handle_not_found(exc: NotFound):
    return jsonify({"error": "NotFound", "message": exc.description}), 404


def preview_schedule():
    result = generate(terms_from_mapping(_json_body()))
    return jsonify(schedule_result_to_dict(result))


def preview_early_repayment():
    result = calculate_early_repayment(early_repayment_request_from_mapping(_json_body()))
    return jsonify(early_repayment_result_to_dict(result))


def run_simulation():
    data = _json_body()
    terms = terms_from_mapping(data.get("terms"))
    raw_scenarios = data.get("scenarios")
    if not isinstance(raw_scenarios, list) or not raw_scenarios:
        raise BadRequest("Field scenarios must be a non-empty list")
    scenarios = [scenario_from_mapping(item) for item in raw_scenarios]
    results = simulate(terms, scenarios, max_workers=current_app.config["SIMULATION_MAX_WORKERS"])
    return jsonify(
        {
            "scenarios": [simulation_result_to_dict(r) for r in results],
            "summary": simulation_summary_to_dict(summarize(results)),
        }
    )


def store_schedule(loan_id: str):
    result = generate(terms_from_mapping(_json_body()))
    _store().replace_schedule(loan_id, result.schedule)
    logger.info("Stored %d installments for loan %s", len(result.schedule), loan_id)
    payload = schedule_result_to_dict(result)
    payload["loan_id"] = loan_id
    return jsonify(payload)


def get_schedule(loan_id: str):
    _require_schedule(loan_id)
    as_of_raw = request.args.get("as_of")
    if as_of_raw:
        try:
            as_of = parse_date(as_of_raw)
        except ValueError as exc:
            raise BadRequest(str(exc))
    else:
        as_of = date.today()
    _store().mark_overdue(loan_id, as_of)
    return jsonify(_loan_view(loan_id))


def execute_early_repayment(loan_id: str):
    _require_schedule(loan_id)
    repayment = early_repayment_request_from_mapping(_json_body())
    result = calculate_early_repayment(repayment)
    _store().apply_early_repayment(
        loan_id, repayment.current_installment, result, repayment.repayment_amount
    )
    logger.info(
        "Early repayment on loan %s at installment %d, remaining %s",
        loan_id,
        repayment.current_installment,
        result.remaining_balance,
    )
    payload = _loan_view(loan_id)
    payload["early_repayment"] = early_repayment_result_to_dict(result)
    payload["payments"] = _store().list_payments(loan_id)
    return jsonify(payload)


def mark_installment_paid(loan_id: str, installment_no: int):
    entry = _store().mark_paid(loan_id, installment_no)
    if entry is None:
        raise NotFound(f"Loan {loan_id} has no installment {installment_no}")
    return jsonify(entry_to_dict(entry))


def create_app(config=None) -> Flask:
    """Build the JSON API.

    Settings come from the environment and are overridden by ``config``.
    """
    app = Flask(__name__)
    app.config.update(_config_from_env())
    if config:
        app.config.update(config)

    setup_logging(app.config["LOAN_ENGINE_LOG_LEVEL"])
    app.extensions["schedule_store"] = create_store_from_env(app.config["SCHEDULE_DATABASE_URL"])

    app.register_error_handler(LoanEngineError, handle_engine_error)
    app.register_error_handler(BadRequest, handle_bad_request)
    app.register_error_handler(NotFound, handle_not_found)

    app.add_url_rule("/api/schedule", view_func=preview_schedule, methods=["POST"])
    app.add_url_rule("/api/early-repayment", view_func=preview_early_repayment, methods=["POST"])
    app.add_url_rule("/api/simulate", view_func=run_simulation, methods=["POST"])
    app.add_url_rule("/api/loans/<loan_id>/schedule", view_func=store_schedule, methods=["PUT"])
    app.add_url_rule("/api/loans/<loan_id>/schedule", view_func=get_schedule, methods=["GET"])
    app.add_url_rule(
        "/api/loans/<loan_id>/early-repayment", view_func=execute_early_repayment, methods=["POST"]
    )
    app.add_url_rule(
        "/api/loans/<loan_id>/installments/<int:installment_no>/mark-paid",
        view_func=mark_installment_paid,
        methods=["POST"],
    )
    return app


if __name__ == "__main__":
    print("Starting loan engine API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
