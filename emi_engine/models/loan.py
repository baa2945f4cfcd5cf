"""Loan models: the loan aggregate, its installments and payments."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from emi_engine.models.enums import (
    InstallmentStatus,
    LoanStatus,
    LoanType,
    PaymentFrequency,
    PaymentMethod,
)

ZERO = Decimal("0")


@dataclass
class Installment:
    """One row of the amortization schedule (EMI)."""

    emi_number: int  # 1, 2, 3, ...
    due_date: date
    due_date_day: int  # Day of month the EMI falls due
    principal_amount: Decimal
    interest_amount: Decimal
    emi_amount: Decimal
    remaining_balance: Decimal  # Closing balance after this EMI
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_date: date | None = None
    paid_amount: Decimal = ZERO
    late_fee: Decimal = ZERO
    days_overdue: int = 0

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass
class PaymentRecord:
    """Append-only record of a payment against an installment."""

    payment_date: date
    amount: Decimal
    emi_number: int
    principal_paid: Decimal
    interest_paid: Decimal
    late_fee: Decimal = ZERO
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: str | None = None


@dataclass
class Loan:
    """Loan aggregate.

    Terms are supplied by the caller; every field under "derived terms" is
    written by ``recompute_derived_fields`` and every running total by
    ``fold_payments``. Build instances with ``create_loan`` rather than
    calling the constructor directly.
    """

    loan_id: str
    user_id: str
    principal_amount: Decimal
    interest_rate: Decimal  # Annual percentage (e.g., 10.5 for 10.5%)
    tenure_months: int
    start_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    installment_due_day: int | None = None  # Defaults to start_date.day

    # Descriptive metadata
    loan_type: LoanType = LoanType.PERSONAL
    loan_name: str = ""
    lender: str = ""
    loan_account_number: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)

    # Charges
    prepayment_allowed: bool = True
    prepayment_charges: Decimal = ZERO
    processing_fee: Decimal = ZERO
    insurance_amount: Decimal = ZERO
    other_charges: Decimal = ZERO

    # Derived terms
    emi_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    total_interest: Decimal = ZERO
    end_date: date | None = None
    remaining_balance: Decimal = ZERO
    next_emi_date: date | None = None
    next_emi_amount: Decimal = ZERO
    emi_schedule: list[Installment] = field(default_factory=list)

    # Payment log and running totals
    payments: list[PaymentRecord] = field(default_factory=list)
    total_paid: Decimal = ZERO
    principal_paid: Decimal = ZERO
    interest_paid: Decimal = ZERO

    status: LoanStatus = LoanStatus.ACTIVE
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None
    version: int = 0

    @property
    def due_day(self) -> int:
        """Day of month installments fall due."""
        return self.installment_due_day or self.start_date.day

    @property
    def is_terminal(self) -> bool:
        return self.status in (LoanStatus.COMPLETED, LoanStatus.PREPAID)

    def get_installment(self, emi_number: int) -> Installment | None:
        """Return the installment for ``emi_number`` or None."""
        if 1 <= emi_number <= len(self.emi_schedule):
            installment = self.emi_schedule[emi_number - 1]
            if installment.emi_number == emi_number:
                return installment
        for installment in self.emi_schedule:
            if installment.emi_number == emi_number:
                return installment
        return None

    def first_unpaid_installment(self) -> Installment | None:
        """Return the earliest installment that is not yet paid."""
        return next((i for i in self.emi_schedule if not i.is_paid), None)
