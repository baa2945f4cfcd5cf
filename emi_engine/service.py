"""Loan service: the boundary a CRUD or HTTP layer calls into.

Every read-modify-write runs under the store's per-loan lock and is
committed with a version bump. Mutations are also recorded as ``Event``
envelopes that can be published to any sink.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from emi_engine.config import EngineConfig
from emi_engine.engine import (
    close_loan_early,
    create_loan,
    due_date_alerts,
    record_payment,
    refresh_status,
    update_terms,
    upcoming_due_dates,
)
from emi_engine.engine.status import DueDate, DueDateAlert, sort_alerts
from emi_engine.models.base import Event
from emi_engine.models.enums import LoanStatus, LoanType, PaymentFrequency, PaymentMethod
from emi_engine.models.loan import ZERO, Installment, Loan, PaymentRecord
from emi_engine.sinks.serialization import loan_header, to_dict_fast
from emi_engine.store.loans import LoanStore, PortfolioSummary, UpcomingEmi

logger = logging.getLogger(__name__)

EVENT_SOURCE = "emi-engine"


class LoanService:
    """Create, modify, pay and read loans held in a ``LoanStore``."""

    def __init__(self, store: LoanStore | None = None, config: EngineConfig | None = None) -> None:
        self.store = store or LoanStore()
        self.config = config or EngineConfig()
        self.events: list[Event] = []

    # Events
    def _emit(self, event_type: str, loan: Loan, data: dict[str, Any]) -> Event:
        event = Event(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            event_time=datetime.now(),
            source=EVENT_SOURCE,
            subject=loan.loan_id,
            data=data,
            metadata={"user_id": loan.user_id, "version": loan.version},
        )
        self.events.append(event)
        return event

    @property
    def events_topic(self) -> str:
        return f"{self.config.output.topic_prefix}.loan-events"

    def publish_events(self, sink: Any) -> int:
        """Write buffered events to ``sink`` and clear the buffer."""
        if not self.events:
            return 0
        events, self.events = self.events, []
        sink.write_batch(self.events_topic, events)
        logger.info("Published %d events to %s", len(events), self.events_topic)
        return len(events)

    # Commands
    def create_loan(
        self,
        user_id: str,
        principal_amount: Decimal | int | float | str,
        interest_rate: Decimal | int | float | str,
        tenure_months: int,
        start_date: date,
        payment_frequency: PaymentFrequency | str = PaymentFrequency.MONTHLY,
        **metadata: Any,
    ) -> Loan:
        """Create a loan, compute its schedule and store it."""
        loan = create_loan(
            user_id,
            principal_amount,
            interest_rate,
            tenure_months,
            start_date,
            payment_frequency,
            limits=self.config.limits,
            **metadata,
        )
        return self.register_loan(loan)

    def register_loan(self, loan: Loan) -> Loan:
        """Store a loan built elsewhere (generators, imports)."""
        self.store.add_loan(loan)
        self.store.save(loan)
        self._emit("loan.created", loan, loan_header(loan))
        return loan

    def update_terms(
        self,
        loan_id: str,
        principal_amount: Decimal | int | float | str | None = None,
        interest_rate: Decimal | int | float | str | None = None,
        tenure_months: int | None = None,
        start_date: date | None = None,
        installment_due_day: int | None = None,
        expected_version: int | None = None,
    ) -> Loan:
        """Modify terms of a loan that has no payments yet."""
        with self.store.locked(loan_id) as loan:
            self.store.check_version(loan_id, expected_version)
            update_terms(
                loan,
                principal_amount=principal_amount,
                interest_rate=interest_rate,
                tenure_months=tenure_months,
                start_date=start_date,
                installment_due_day=installment_due_day,
                limits=self.config.limits,
            )
            self.store.save(loan, expected_version)
            self._emit("loan.terms_updated", loan, loan_header(loan))
            return loan

    def record_payment(
        self,
        loan_id: str,
        amount: Decimal | int | float | str,
        emi_number: int | None = None,
        payment_date: date | None = None,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        notes: str | None = None,
        late_fee: Decimal | int | float | str = ZERO,
        expected_version: int | None = None,
        as_of: date | None = None,
    ) -> tuple[Loan, PaymentRecord]:
        """Record a payment and return the updated loan and the payment.

        The loan status is re-derived as of ``as_of`` (today by default).
        """
        with self.store.locked(loan_id) as loan:
            self.store.check_version(loan_id, expected_version)
            previous_status = loan.status
            payment = record_payment(
                loan,
                amount,
                emi_number=emi_number,
                payment_date=payment_date,
                payment_method=payment_method,
                notes=notes,
                late_fee=late_fee,
                as_of=as_of,
            )
            self.store.save(loan, expected_version)
            self._emit("loan.payment_recorded", loan, to_dict_fast(payment))
            self._emit_status_change(loan, previous_status)
            return loan, payment

    def close_loan_early(
        self,
        loan_id: str,
        payment_date: date | None = None,
        amount: Decimal | int | float | str | None = None,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        notes: str | None = None,
    ) -> tuple[Loan, PaymentRecord]:
        """Pay off a loan early, moving it to ``prepaid``."""
        with self.store.locked(loan_id) as loan:
            previous_status = loan.status
            payment = close_loan_early(
                loan,
                payment_date=payment_date,
                amount=amount,
                payment_method=payment_method,
                notes=notes,
            )
            self.store.save(loan)
            self._emit("loan.prepaid", loan, to_dict_fast(payment))
            self._emit_status_change(loan, previous_status)
            return loan, payment

    def refresh_status(self, loan_id: str, as_of: date | None = None) -> LoanStatus:
        """Re-derive a loan's status as of a date (defaults to today)."""
        with self.store.locked(loan_id) as loan:
            previous_status = loan.status
            status = refresh_status(loan, as_of)
            if status != previous_status:
                self.store.save(loan)
                self._emit_status_change(loan, previous_status)
            return status

    def delete_loan(self, loan_id: str) -> Loan:
        """Remove a loan from the store."""
        loan = self.store.remove_loan(loan_id)
        logger.info("Deleted loan %s", loan_id)
        return loan

    def _emit_status_change(self, loan: Loan, previous: LoanStatus) -> None:
        if loan.status != previous:
            self._emit(
                "loan.status_changed",
                loan,
                {"from": previous.value, "to": loan.status.value},
            )

    # Queries
    def get_loan(self, loan_id: str) -> Loan:
        return self.store.get_loan(loan_id)

    def get_schedule(self, loan_id: str) -> list[Installment]:
        """Return the loan's EMI schedule."""
        return list(self.store.get_loan(loan_id).emi_schedule)

    def get_payments(self, loan_id: str) -> list[PaymentRecord]:
        return list(self.store.get_loan(loan_id).payments)

    def list_loans(
        self,
        user_id: str,
        status: LoanStatus | str | None = None,
        loan_type: LoanType | str | None = None,
    ) -> list[Loan]:
        return self.store.get_user_loans(
            user_id,
            status=LoanStatus(status) if status is not None else None,
            loan_type=LoanType(loan_type) if loan_type is not None else None,
        )

    def portfolio_summary(self, user_id: str, status: LoanStatus | str | None = None) -> PortfolioSummary:
        return self.store.portfolio_summary(
            user_id, status=LoanStatus(status) if status is not None else None
        )

    def upcoming_emis(self, user_id: str, as_of: date | None = None, days: int | None = None) -> list[UpcomingEmi]:
        return self.store.upcoming_emis(user_id, as_of, days or self.config.alerts.upcoming_days)

    def upcoming_due_dates(self, loan_id: str, as_of: date | None = None, months: int | None = None) -> list[DueDate]:
        """Unpaid installments of one loan due within ``months`` (configured window by default)."""
        with self.store.locked(loan_id) as loan:
            return upcoming_due_dates(loan, as_of, months, self.config.alerts)

    def due_date_alerts(self, user_id: str, as_of: date | None = None, days: int | None = None) -> list[DueDateAlert]:
        """Due-date alerts across a user's active and defaulted loans."""
        alerts: list[DueDateAlert] = []
        for loan in self.store.get_user_loans(user_id):
            with self.store.locked(loan.loan_id) as locked_loan:
                previous_status = locked_loan.status
                alerts.extend(due_date_alerts([locked_loan], as_of, days, self.config.alerts))
                if locked_loan.status != previous_status:
                    self.store.save(locked_loan)
                    self._emit_status_change(locked_loan, previous_status)
        return sort_alerts(alerts)
