"""Tests for status derivation, summaries, alerts and risk scoring."""

from datetime import date
from decimal import Decimal

from emi_engine.config import AlertConfig
from emi_engine.engine import (
    assess_risk,
    close_loan_early,
    create_loan,
    due_date_alerts,
    installment_summary,
    progress_percentage,
    record_payment,
    refresh_status,
    upcoming_due_dates,
)
from emi_engine.models import AlertType, InstallmentStatus, Loan, LoanStatus, RiskLevel


class TestRefreshStatus:
    """Tests for refresh_status."""

    def test_active_before_first_due_date(self, loan: Loan) -> None:
        """Test a loan with nothing due stays active."""
        assert refresh_status(loan, date(2024, 2, 15)) == LoanStatus.ACTIVE
        assert loan.emi_schedule[0].status == InstallmentStatus.PENDING

    def test_defaulted_when_installment_overdue(self, loan: Loan) -> None:
        """Test an unpaid past-due installment defaults the loan."""
        status = refresh_status(loan, date(2024, 3, 1))

        assert status == LoanStatus.DEFAULTED
        assert loan.status == LoanStatus.DEFAULTED
        first, second = loan.emi_schedule[0], loan.emi_schedule[1]
        assert first.status == InstallmentStatus.OVERDUE
        assert first.days_overdue == 15
        assert second.status == InstallmentStatus.PENDING
        assert second.days_overdue == 0

    def test_payment_cures_default(self, loan: Loan) -> None:
        """Test paying the overdue installment returns the loan to active."""
        refresh_status(loan, date(2024, 3, 1))
        record_payment(loan, 8885, emi_number=1, payment_date=date(2024, 3, 1), as_of=date(2024, 3, 1))

        assert loan.status == LoanStatus.ACTIVE
        assert loan.emi_schedule[0].days_overdue == 0

    def test_idempotent(self, loan: Loan) -> None:
        """Test refreshing twice with the same date changes nothing."""
        as_of = date(2024, 5, 20)
        first = refresh_status(loan, as_of)
        snapshot = [(i.status, i.days_overdue) for i in loan.emi_schedule]

        assert refresh_status(loan, as_of) == first
        assert [(i.status, i.days_overdue) for i in loan.emi_schedule] == snapshot

    def test_completed_when_nothing_remains(self, zero_rate_loan: Loan) -> None:
        """Test a zero balance means completed."""
        zero_rate_loan.remaining_balance = Decimal("0")

        assert refresh_status(zero_rate_loan, date(2030, 1, 1)) == LoanStatus.COMPLETED

    def test_prepaid_is_sticky(self, loan: Loan) -> None:
        """Test prepaid is never re-derived."""
        close_loan_early(loan, payment_date=date(2024, 1, 20))

        assert refresh_status(loan, date(2030, 1, 1)) == LoanStatus.PREPAID

    def test_overdue_recovers_to_pending_when_date_moves_back(self, loan: Loan) -> None:
        """Test status is derived from the evaluation date alone."""
        refresh_status(loan, date(2024, 3, 1))
        refresh_status(loan, date(2024, 2, 1))

        assert loan.status == LoanStatus.ACTIVE
        assert loan.emi_schedule[0].status == InstallmentStatus.PENDING


class TestSummaries:
    """Tests for installment_summary and progress_percentage."""

    def test_installment_summary(self, loan: Loan) -> None:
        """Test counts by installment state."""
        record_payment(loan, 8885, emi_number=1, payment_date=date(2024, 2, 15))
        refresh_status(loan, date(2024, 3, 20))

        summary = installment_summary(loan)
        assert summary.total == 12
        assert summary.paid == 1
        assert summary.remaining == 11
        assert summary.overdue == 1
        assert summary.pending == 10
        assert summary.completion_percentage == 8.3

    def test_progress_percentage(self, loan: Loan) -> None:
        """Test repaid share of principal."""
        assert progress_percentage(loan) == 0.0

        record_payment(loan, 8885, emi_number=1, payment_date=date(2024, 2, 15))
        assert round(progress_percentage(loan), 3) == 7.885


class TestUpcomingDueDates:
    """Tests for upcoming_due_dates."""

    def test_window(self, loan: Loan) -> None:
        """Test unpaid installments within the month window."""
        upcoming = upcoming_due_dates(loan, date(2024, 1, 20), months=3)

        assert [d.emi_number for d in upcoming] == [1, 2, 3]
        assert upcoming[0].days_until_due == 26
        assert upcoming[0].amount == Decimal("8885")

    def test_window_from_config(self, loan: Loan) -> None:
        """Test the window defaults to the configured number of months."""
        assert len(upcoming_due_dates(loan, date(2024, 1, 20))) == 3

        config = AlertConfig(upcoming_months=2)
        assert [d.emi_number for d in upcoming_due_dates(loan, date(2024, 1, 20), config=config)] == [1, 2]

    def test_skips_paid_and_keeps_overdue(self, loan: Loan) -> None:
        """Test paid rows are skipped and overdue rows kept."""
        record_payment(loan, 8885, emi_number=2, payment_date=date(2024, 3, 10))
        refresh_status(loan, date(2024, 3, 20))

        upcoming = upcoming_due_dates(loan, date(2024, 3, 20), months=1)

        assert [d.emi_number for d in upcoming] == [1, 3]
        assert upcoming[0].status == InstallmentStatus.OVERDUE
        assert upcoming[0].days_overdue == 34


class TestDueDateAlerts:
    """Tests for due_date_alerts."""

    def test_urgent_alert(self, loan: Loan) -> None:
        """Test an installment due within three days is urgent."""
        alerts = due_date_alerts([loan], date(2024, 2, 13))

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == AlertType.URGENT
        assert alert.days_until_due == 2
        assert alert.message == "Due in 2 days! Pay 8,885 by 2024-02-15."
        assert alert.loan_name == "Test Personal Loan"

    def test_single_day_wording(self, loan: Loan) -> None:
        """Test one day is not pluralised."""
        alerts = due_date_alerts([loan], date(2024, 2, 14))

        assert alerts[0].message == "Due in 1 day! Pay 8,885 by 2024-02-15."

    def test_warning_alert(self, loan: Loan) -> None:
        """Test four to seven days out is a warning."""
        alerts = due_date_alerts([loan], date(2024, 2, 10))

        assert alerts[0].alert_type == AlertType.WARNING
        assert alerts[0].message == "Due in 5 days. Pay 8,885 by 2024-02-15."

    def test_critical_sorted_first(self, loan: Loan) -> None:
        """Test overdue alerts come before upcoming ones."""
        alerts = due_date_alerts([loan], date(2024, 2, 20))

        assert [a.alert_type for a in alerts] == [AlertType.CRITICAL, AlertType.INFO]
        assert alerts[0].message == "Overdue by 5 days! Pay 8,885 immediately to avoid penalties."
        assert alerts[1].message == "Upcoming payment of 8,885 on 2024-03-15."
        assert loan.status == LoanStatus.DEFAULTED

    def test_custom_thresholds(self, loan: Loan) -> None:
        """Test configured urgency windows."""
        config = AlertConfig(urgent_days=1, warning_days=2)

        alerts = due_date_alerts([loan], date(2024, 2, 10), config=config)

        assert alerts[0].alert_type == AlertType.INFO

    def test_skips_closed_loans(self, loan: Loan, zero_rate_loan: Loan) -> None:
        """Test completed and prepaid loans raise no alerts."""
        close_loan_early(loan, payment_date=date(2024, 1, 20))

        alerts = due_date_alerts([loan, zero_rate_loan], date(2024, 2, 13))

        assert {a.loan_id for a in alerts} == {zero_rate_loan.loan_id}

    def test_multiple_loans_ordered(self, loan: Loan, sample_user_id: str) -> None:
        """Test alerts from several loans are ordered by urgency then date."""
        other = create_loan(sample_user_id, 12000, 0, 12, date(2024, 1, 1), loan_id="loan-other")

        alerts = due_date_alerts([loan, other], date(2024, 2, 10))

        assert [(a.loan_id, a.alert_type) for a in alerts] == [
            ("loan-other", AlertType.CRITICAL),
            (loan.loan_id, AlertType.WARNING),
            ("loan-other", AlertType.INFO),
        ]


class TestAssessRisk:
    """Tests for assess_risk."""

    def test_low_risk(self, loan: Loan) -> None:
        """Test a modest EMI against income."""
        assert assess_risk(loan, Decimal("40000")) == RiskLevel.LOW

    def test_moderate_risk(self, loan: Loan) -> None:
        """Test an EMI above half of income."""
        assert assess_risk(loan, 15000) == RiskLevel.MODERATE

    def test_high_risk(self, sample_user_id: str, start_date: date) -> None:
        """Test expensive long loans against a small income."""
        loan = create_loan(sample_user_id, 100000, 18, 60, start_date)

        assert assess_risk(loan, 4000) == RiskLevel.HIGH
        assert assess_risk(loan, 10000) == RiskLevel.MODERATE

    def test_unknown_income(self, loan: Loan) -> None:
        """Test missing income is treated as low risk."""
        assert assess_risk(loan, None) == RiskLevel.LOW
        assert assess_risk(loan, 0) == RiskLevel.LOW
