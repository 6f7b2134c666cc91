"""Pytest fixtures for testing"""

from datetime import date
from decimal import Decimal

import pytest

from loan_engine.data_models import ANNUITY, LoanTerms
from loan_engine_web.app import create_app
from loan_engine_web.schedule_store import ScheduleStore


@pytest.fixture
def annuity_terms() -> LoanTerms:
    """10 000 at 5 % over 12 months, 30/360, no fees"""
    return LoanTerms(
        loan_type=ANNUITY,
        principal=Decimal("10000"),
        annual_rate=Decimal("5"),
        term_months=12,
        start_date=date(2024, 1, 15),
        day_count_convention="30/360",
    )


@pytest.fixture
def terms_payload() -> dict:
    """The annuity loan above as a JSON request body"""
    return {
        "loan_type": "annuity",
        "principal": 10000,
        "annual_rate": 5,
        "term_months": 12,
        "start_date": "2024-01-15",
        "day_count_convention": "30/360",
    }


@pytest.fixture
def store(tmp_path) -> ScheduleStore:
    """Schedule store backed by a temporary SQLite file"""
    return ScheduleStore(f"sqlite:///{tmp_path / 'store.sqlite3'}")


@pytest.fixture
def client(tmp_path):
    """Flask test client with its own SQLite database"""
    app = create_app(
        {
            "TESTING": True,
            "SCHEDULE_DATABASE_URL": f"sqlite:///{tmp_path / 'api.sqlite3'}",
            "LOAN_ENGINE_LOG_LEVEL": "WARNING",
            "SIMULATION_MAX_WORKERS": None,
        }
    )
    return app.test_client()
