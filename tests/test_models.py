"""Tests for loan models and enums."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from emi_engine.models import (
    AlertType,
    Event,
    Installment,
    InstallmentStatus,
    Loan,
    LoanStatus,
    LoanType,
    PaymentMethod,
    PaymentRecord,
    RiskLevel,
)


class TestEnums:
    """Tests for enum values."""

    def test_string_values(self) -> None:
        """Test enums compare equal to their wire values."""
        assert LoanStatus.PREPAID == "prepaid"
        assert InstallmentStatus.OVERDUE.value == "overdue"
        assert PaymentMethod("auto-debit") is PaymentMethod.AUTO_DEBIT
        assert RiskLevel.HIGH.value == "High Risk"
        assert AlertType("critical") is AlertType.CRITICAL

    def test_unknown_value(self) -> None:
        """Test unknown values are rejected."""
        with pytest.raises(ValueError):
            LoanType("yacht")


class TestInstallment:
    """Tests for Installment."""

    def test_defaults(self) -> None:
        """Test a new installment is pending and unpaid."""
        installment = Installment(
            emi_number=1,
            due_date=date(2024, 2, 15),
            due_date_day=15,
            principal_amount=Decimal("7885"),
            interest_amount=Decimal("1000"),
            emi_amount=Decimal("8885"),
            remaining_balance=Decimal("92115"),
        )

        assert installment.status == InstallmentStatus.PENDING
        assert installment.is_paid is False
        assert installment.paid_date is None
        assert installment.paid_amount == 0
        assert installment.days_overdue == 0

        installment.status = InstallmentStatus.PAID
        assert installment.is_paid is True


class TestPaymentRecord:
    """Tests for PaymentRecord."""

    def test_defaults(self) -> None:
        """Test optional fields."""
        payment = PaymentRecord(
            payment_date=date(2024, 2, 15),
            amount=Decimal("8885"),
            emi_number=1,
            principal_paid=Decimal("7885"),
            interest_paid=Decimal("1000"),
        )

        assert payment.late_fee == 0
        assert payment.payment_method == PaymentMethod.CASH
        assert payment.notes is None


class TestLoan:
    """Tests for the Loan aggregate."""

    def test_bare_constructor_defaults(self) -> None:
        """Test a constructed loan has empty derived fields."""
        loan = Loan(
            loan_id="l1",
            user_id="u1",
            principal_amount=Decimal("1000"),
            interest_rate=Decimal("10"),
            tenure_months=12,
            start_date=date(2024, 1, 31),
        )

        assert loan.emi_schedule == []
        assert loan.payments == []
        assert loan.status == LoanStatus.ACTIVE
        assert loan.due_day == 31
        assert loan.first_unpaid_installment() is None
        assert isinstance(loan.created_at, datetime)

    def test_due_day_override(self, loan: Loan) -> None:
        """Test an explicit due day wins over the start day."""
        assert loan.due_day == 15

        loan.installment_due_day = 5
        assert loan.due_day == 5

    def test_get_installment(self, loan: Loan) -> None:
        """Test lookup by EMI number."""
        assert loan.get_installment(1) is loan.emi_schedule[0]
        assert loan.get_installment(12) is loan.emi_schedule[11]
        assert loan.get_installment(0) is None
        assert loan.get_installment(13) is None

    def test_first_unpaid(self, loan: Loan) -> None:
        """Test the earliest unpaid installment is found."""
        loan.emi_schedule[0].status = InstallmentStatus.PAID

        assert loan.first_unpaid_installment() is loan.emi_schedule[1]

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (LoanStatus.ACTIVE, False),
            (LoanStatus.DEFAULTED, False),
            (LoanStatus.COMPLETED, True),
            (LoanStatus.PREPAID, True),
        ],
    )
    def test_is_terminal(self, loan: Loan, status: LoanStatus, terminal: bool) -> None:
        """Test completed and prepaid loans are closed."""
        loan.status = status

        assert loan.is_terminal is terminal

    def test_mutable_defaults_not_shared(self) -> None:
        """Test list fields are per instance."""
        first = Loan("a", "u", Decimal("1"), Decimal("1"), 1, date(2024, 1, 1))
        second = Loan("b", "u", Decimal("1"), Decimal("1"), 1, date(2024, 1, 1))
        first.tags.append("x")

        assert second.tags == []


class TestEvent:
    """Tests for Event."""

    def test_metadata_default(self) -> None:
        """Test metadata defaults to an empty dict."""
        event = Event(
            event_id="e1",
            event_type="loan.created",
            event_time=datetime(2024, 1, 1),
            source="emi-engine",
            subject="l1",
            data={},
        )

        assert event.metadata == {}
