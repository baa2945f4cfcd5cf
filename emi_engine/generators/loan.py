"""Sample loan generator and payment behavior simulator."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

from emi_engine.engine.lifecycle import create_loan
from emi_engine.engine.payments import record_payment
from emi_engine.engine.status import refresh_status
from emi_engine.generators.base import BaseGenerator
from emi_engine.models.enums import LoanType, PaymentMethod
from emi_engine.models.loan import Loan, PaymentRecord

logger = logging.getLogger(__name__)


class LoanGenerator(BaseGenerator):
    """Generate sample loans with computed schedules."""

    # Principal range (thousands), tenure options (months), annual rate range (%)
    LOAN_TERMS = {
        LoanType.PERSONAL: ((50, 1500), [12, 24, 36, 48, 60], (10.5, 24.0)),
        LoanType.HOME: ((1500, 15000), [120, 180, 240, 300], (8.0, 10.5)),
        LoanType.CAR: ((300, 2500), [36, 48, 60, 84], (8.5, 12.5)),
        LoanType.EDUCATION: ((200, 4000), [60, 84, 120], (8.0, 13.0)),
        LoanType.BUSINESS: ((500, 5000), [12, 24, 36, 60], (11.0, 20.0)),
        LoanType.GOLD: ((20, 500), [6, 12, 24], (7.0, 15.0)),
    }

    LENDER_SUFFIXES = ["Bank", "Finance", "Capital", "Credit"]

    def generate(
        self,
        user_id: str,
        loan_type: LoanType | None = None,
        start_date: date | None = None,
    ) -> Loan:
        """Generate one loan.

        Parameters
        ----------
        user_id : str
            Owning user.
        loan_type : LoanType | None
            Loan type; random when omitted.
        start_date : date | None
            Start date; random within the last two years when omitted.

        Returns
        -------
        Loan
            Loan created through ``create_loan``.
        """
        loan_type = loan_type or self.random.choice(list(self.LOAN_TERMS))
        (low, high), tenures, (rate_low, rate_high) = self.LOAN_TERMS[loan_type]

        principal = Decimal(self.random.randint(low, high) * 1000)
        tenure = self.random.choice(tenures)
        rate = Decimal(str(round(self.random.uniform(rate_low, rate_high), 2)))
        if start_date is None:
            start_date = date.today() - timedelta(days=self.random.randint(30, 730))

        lender = f"{self.fake.last_name()} {self.random.choice(self.LENDER_SUFFIXES)}"

        return create_loan(
            user_id,
            principal,
            rate,
            tenure,
            start_date,
            loan_id=self.fake.uuid4(),
            installment_due_day=min(start_date.day, 28),
            loan_type=loan_type,
            loan_name=f"{loan_type.value.title()} loan from {lender}",
            lender=lender,
            loan_account_number=self.fake.bothify("LN##########"),
            processing_fee=(principal * Decimal("0.01")).quantize(Decimal("1")),
        )

    def generate_batch(self, count: int, user_ids: list[str]) -> Iterator[Loan]:
        """Generate ``count`` loans spread over ``user_ids``."""
        for _ in range(count):
            yield self.generate(self.random.choice(user_ids))


class PaymentSimulator(BaseGenerator):
    """Replay realistic payment behavior against a loan's schedule."""

    BEHAVIORS = ["good", "occasional_late", "chronic_late", "defaulter"]
    GRACE_DAYS = 5
    LATE_FEE = Decimal("500")

    def simulate(
        self,
        loan: Loan,
        as_of: date | None = None,
        on_time_rate: float = 0.85,
        late_rate: float = 0.10,
        default_rate: float = 0.05,
    ) -> list[PaymentRecord]:
        """Record payments for installments due up to ``as_of``.

        Parameters
        ----------
        loan : Loan
            Loan to update in place.
        as_of : date | None
            Simulation date (defaults to today).
        on_time_rate : float
            Weight of borrowers who pay within a few days.
        late_rate : float
            Weight of borrowers who pay late (occasionally or chronically).
        default_rate : float
            Weight of borrowers who stop paying after a few EMIs.

        Returns
        -------
        list[PaymentRecord]
            Payments recorded, in schedule order.
        """
        as_of = as_of or date.today()
        behavior = self.random.choices(
            self.BEHAVIORS,
            weights=[on_time_rate, late_rate * 0.7, late_rate * 0.3, default_rate],
            k=1,
        )[0]
        stop_after = self.random.randint(2, 6)

        payments = []
        for installment in loan.emi_schedule:
            if installment.due_date > as_of:
                break
            if behavior == "defaulter" and installment.emi_number > stop_after:
                break

            paid_date = installment.due_date + timedelta(days=self._days_late(behavior))
            if paid_date > as_of:
                break

            late_fee = self.LATE_FEE if paid_date > installment.due_date + timedelta(days=self.GRACE_DAYS) else Decimal("0")
            payments.append(
                record_payment(
                    loan,
                    installment.emi_amount + late_fee,
                    emi_number=installment.emi_number,
                    payment_date=paid_date,
                    payment_method=self.random.choice(list(PaymentMethod)),
                    late_fee=late_fee,
                    as_of=as_of,
                )
            )

        refresh_status(loan, as_of)
        logger.debug(
            "Simulated %s borrower on loan %s: %d payments, status=%s",
            behavior,
            loan.loan_id,
            len(payments),
            loan.status.value,
        )
        return payments

    def _days_late(self, behavior: str) -> int:
        if behavior == "good":
            return self.random.randint(0, 3)
        if behavior == "occasional_late":
            return self.random.randint(0, 5) if self.random.random() < 0.8 else self.random.randint(10, 30)
        if behavior == "chronic_late":
            return self.random.randint(5, 45)
        return self.random.randint(0, 15)
