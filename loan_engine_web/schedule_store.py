"""Persistence layer for generated loan schedules.

The engine itself never touches storage; this module keeps the schedule rows
of each loan and the lump-sum payments executed against them so the web API
can track installment status over time. It defaults to SQLite for local
development, but accepts any SQLAlchemy-compatible URL (e.g.
PostgreSQL/MySQL).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from loan_engine.data_models import EarlyRepaymentResult, ScheduleEntry
from loan_engine.utils import ZERO, round_money

Base = declarative_base()

PENDING = "pending"
PAID = "paid"
OVERDUE = "overdue"

MONEY = Numeric(18, 2)


class ScheduleRowModel(Base):
    __tablename__ = "schedule_rows"
    __table_args__ = (UniqueConstraint("loan_id", "installment_no", name="uq_schedule_rows_installment"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(String(64), index=True, nullable=False)
    installment_no = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    principal_due = Column(MONEY, nullable=False)
    interest_due = Column(MONEY, nullable=False)
    fees_due = Column(MONEY, nullable=False)
    total_due = Column(MONEY, nullable=False)
    principal_balance_after = Column(MONEY, nullable=False)
    status = Column(String(16), nullable=False, default=PENDING)


class LoanPaymentModel(Base):
    __tablename__ = "loan_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(String(64), index=True, nullable=False)
    installment_no = Column(Integer, nullable=False)
    amount = Column(MONEY, nullable=False)
    penalty_amount = Column(MONEY, nullable=False)
    principal_reduction = Column(MONEY, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ScheduleStore:
    """Database-backed schedule store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def replace_schedule(self, loan_id: str, schedule: Sequence[ScheduleEntry]) -> None:
        """Drop every stored row of ``loan_id`` and store ``schedule`` instead."""
        with self._session_factory() as session:
            session.execute(delete(ScheduleRowModel).where(ScheduleRowModel.loan_id == loan_id))
            session.add_all(self._to_row(loan_id, entry) for entry in schedule)
            session.commit()

    def has_schedule(self, loan_id: str) -> bool:
        with self._session_factory() as session:
            row = session.execute(
                select(ScheduleRowModel.id).where(ScheduleRowModel.loan_id == loan_id).limit(1)
            ).first()
            return row is not None

    def list_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        with self._session_factory() as session:
            rows: Iterable[ScheduleRowModel] = session.execute(
                select(ScheduleRowModel)
                .where(ScheduleRowModel.loan_id == loan_id)
                .order_by(ScheduleRowModel.installment_no.asc())
            ).scalars()
            return [self._to_entry(row) for row in rows]

    def apply_early_repayment(
        self,
        loan_id: str,
        current_installment: int,
        result: EarlyRepaymentResult,
        amount: Decimal,
    ) -> List[ScheduleEntry]:
        """Execute an early repayment computed by the engine.

        Rows from ``current_installment`` on are replaced by the regenerated
        schedule, renumbered to continue after the last kept row, and the lump
        sum is recorded as a payment. Returns the stored schedule.
        """
        offset = current_installment - 1
        with self._session_factory() as session:
            session.execute(
                delete(ScheduleRowModel).where(
                    ScheduleRowModel.loan_id == loan_id,
                    ScheduleRowModel.installment_no >= current_installment,
                )
            )
            for entry in result.new_schedule:
                row = self._to_row(loan_id, entry)
                row.installment_no = entry.installment_no + offset
                session.add(row)
            session.add(
                LoanPaymentModel(
                    loan_id=loan_id,
                    installment_no=current_installment,
                    amount=round_money(amount),
                    penalty_amount=result.penalty_amount,
                    principal_reduction=result.principal_reduction,
                )
            )
            session.commit()
        return self.list_schedule(loan_id)

    def list_payments(self, loan_id: str) -> List[dict]:
        with self._session_factory() as session:
            rows = session.execute(
                select(LoanPaymentModel)
                .where(LoanPaymentModel.loan_id == loan_id)
                .order_by(LoanPaymentModel.id.asc())
            ).scalars()
            return [
                {
                    "installment_no": row.installment_no,
                    "amount": float(row.amount),
                    "penalty_amount": float(row.penalty_amount),
                    "principal_reduction": float(row.principal_reduction),
                    "created_at": row.created_at.isoformat(),
                }
                for row in rows
            ]

    def mark_paid(self, loan_id: str, installment_no: int) -> Optional[ScheduleEntry]:
        """Mark one installment paid; ``None`` if the loan has no such row."""
        with self._session_factory() as session:
            row = session.execute(
                select(ScheduleRowModel).where(
                    ScheduleRowModel.loan_id == loan_id,
                    ScheduleRowModel.installment_no == installment_no,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            row.status = PAID
            session.commit()
            return self._to_entry(row)

    def mark_overdue(self, loan_id: str, as_of: date) -> int:
        """Flag pending installments due strictly before ``as_of``; return how many."""
        with self._session_factory() as session:
            outcome = session.execute(
                update(ScheduleRowModel)
                .where(
                    ScheduleRowModel.loan_id == loan_id,
                    ScheduleRowModel.status == PENDING,
                    ScheduleRowModel.due_date < as_of,
                )
                .values(status=OVERDUE)
            )
            session.commit()
            return outcome.rowcount

    def next_due_installment(self, loan_id: str) -> Optional[ScheduleEntry]:
        with self._session_factory() as session:
            row = session.execute(
                select(ScheduleRowModel)
                .where(
                    ScheduleRowModel.loan_id == loan_id,
                    ScheduleRowModel.status.in_((PENDING, OVERDUE)),
                )
                .order_by(ScheduleRowModel.installment_no.asc())
                .limit(1)
            ).scalar_one_or_none()
            return self._to_entry(row) if row is not None else None

    def principal_remaining(self, loan_id: str) -> Decimal:
        """Principal still owed before the next unpaid installment.

        Zero once every installment is paid.
        """
        entry = self.next_due_installment(loan_id)
        if entry is None:
            return ZERO
        return entry.principal_balance_after + entry.principal_due

    @staticmethod
    def _to_row(loan_id: str, entry: ScheduleEntry) -> ScheduleRowModel:
        return ScheduleRowModel(
            loan_id=loan_id,
            installment_no=entry.installment_no,
            due_date=entry.due_date,
            principal_due=entry.principal_due,
            interest_due=entry.interest_due,
            fees_due=entry.fees_due,
            total_due=entry.total_due,
            principal_balance_after=entry.principal_balance_after,
            status=entry.status,
        )

    @staticmethod
    def _to_entry(row: ScheduleRowModel) -> ScheduleEntry:
        return ScheduleEntry(
            installment_no=row.installment_no,
            due_date=row.due_date,
            principal_due=round_money(row.principal_due),
            interest_due=round_money(row.interest_due),
            fees_due=round_money(row.fees_due),
            total_due=round_money(row.total_due),
            principal_balance_after=round_money(row.principal_balance_after),
            status=row.status,
        )


def create_store_from_env(url: Optional[str]) -> ScheduleStore:
    return ScheduleStore(url or "sqlite:///schedule_data.sqlite3")
