"""Loan status derivation and read-side summaries."""

import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from emi_engine.config import AlertConfig
from emi_engine.engine.schedule import add_months
from emi_engine.models.enums import AlertType, InstallmentStatus, LoanStatus, RiskLevel
from emi_engine.models.loan import Loan

logger = logging.getLogger(__name__)


def refresh_status(loan: Loan, as_of: date | None = None) -> LoanStatus:
    """Re-derive installment and loan status as of a date.

    ``prepaid`` is set out-of-band and never re-derived. A loan with no
    remaining balance is ``completed`` regardless of its schedule.
    Otherwise unpaid installments past their due date become ``overdue``
    and any overdue installment makes the loan ``defaulted``.

    Parameters
    ----------
    loan : Loan
        Loan to update in place.
    as_of : date | None
        Evaluation date (defaults to today).

    Returns
    -------
    LoanStatus
        The derived status.
    """
    if loan.status == LoanStatus.PREPAID:
        return loan.status

    previous = loan.status

    if loan.remaining_balance <= 0:
        loan.status = LoanStatus.COMPLETED
    else:
        as_of = as_of or date.today()
        any_overdue = False
        for installment in loan.emi_schedule:
            if installment.is_paid:
                continue
            if installment.due_date < as_of:
                installment.status = InstallmentStatus.OVERDUE
                installment.days_overdue = (as_of - installment.due_date).days
                any_overdue = True
            else:
                installment.status = InstallmentStatus.PENDING
                installment.days_overdue = 0

        loan.status = LoanStatus.DEFAULTED if any_overdue else LoanStatus.ACTIVE

    if loan.status != previous:
        logger.info(
            "Loan %s status %s -> %s",
            loan.loan_id,
            previous.value,
            loan.status.value,
            extra={"loan_id": loan.loan_id, "status": loan.status.value},
        )
    return loan.status


@dataclass
class InstallmentSummary:
    """Counts of installments by state."""

    total: int
    paid: int
    remaining: int
    overdue: int
    pending: int
    completion_percentage: float


def installment_summary(loan: Loan) -> InstallmentSummary:
    """Summarize the schedule by installment status."""
    total = len(loan.emi_schedule)
    paid = sum(1 for i in loan.emi_schedule if i.status == InstallmentStatus.PAID)
    overdue = sum(1 for i in loan.emi_schedule if i.status == InstallmentStatus.OVERDUE)
    pending = sum(1 for i in loan.emi_schedule if i.status == InstallmentStatus.PENDING)

    return InstallmentSummary(
        total=total,
        paid=paid,
        remaining=total - paid,
        overdue=overdue,
        pending=pending,
        completion_percentage=round(paid / total * 100, 1) if total else 0.0,
    )


def progress_percentage(loan: Loan) -> float:
    """Share of principal already repaid, in percent."""
    if loan.principal_amount <= 0:
        return 0.0
    repaid = loan.principal_amount - loan.remaining_balance
    return float(repaid / loan.principal_amount * 100)


@dataclass
class DueDate:
    """An unpaid installment within a look-ahead window."""

    loan_id: str
    emi_number: int
    due_date: date
    amount: Decimal
    status: InstallmentStatus
    days_until_due: int
    days_overdue: int


def upcoming_due_dates(
    loan: Loan,
    as_of: date | None = None,
    months: int | None = None,
    config: AlertConfig | None = None,
) -> list[DueDate]:
    """Unpaid installments due on or before ``as_of`` + ``months``.

    ``months`` defaults to ``config.upcoming_months``. Overdue installments
    are included. Results are ordered by due date.
    """
    as_of = as_of or date.today()
    if months is None:
        months = (config or AlertConfig()).upcoming_months
    horizon = add_months(as_of, months)

    upcoming = [
        DueDate(
            loan_id=loan.loan_id,
            emi_number=i.emi_number,
            due_date=i.due_date,
            amount=i.emi_amount,
            status=i.status,
            days_until_due=(i.due_date - as_of).days,
            days_overdue=i.days_overdue,
        )
        for i in loan.emi_schedule
        if not i.is_paid and i.due_date <= horizon
    ]
    return sorted(upcoming, key=lambda d: d.due_date)


@dataclass
class DueDateAlert:
    """A due-date reminder classified by urgency."""

    loan_id: str
    loan_name: str
    emi_number: int
    due_date: date
    amount: Decimal
    status: InstallmentStatus
    days_until_due: int
    days_overdue: int
    alert_type: AlertType
    message: str


_URGENCY_ORDER = {
    AlertType.CRITICAL: 0,
    AlertType.URGENT: 1,
    AlertType.WARNING: 2,
    AlertType.INFO: 3,
}


def _classify(due: DueDate, config: AlertConfig) -> tuple[AlertType, str]:
    amount = f"{due.amount:,}"
    if due.status == InstallmentStatus.OVERDUE:
        return (
            AlertType.CRITICAL,
            f"Overdue by {due.days_overdue} days! Pay {amount} immediately to avoid penalties.",
        )
    days = due.days_until_due
    if days <= config.urgent_days:
        plural = "" if days == 1 else "s"
        return AlertType.URGENT, f"Due in {days} day{plural}! Pay {amount} by {due.due_date.isoformat()}."
    if days <= config.warning_days:
        return AlertType.WARNING, f"Due in {days} days. Pay {amount} by {due.due_date.isoformat()}."
    return AlertType.INFO, f"Upcoming payment of {amount} on {due.due_date.isoformat()}."


def due_date_alerts(
    loans: Iterable[Loan],
    as_of: date | None = None,
    days: int | None = None,
    config: AlertConfig | None = None,
) -> list[DueDateAlert]:
    """Build due-date alerts for active and defaulted loans.

    Each loan's status is refreshed first. Alerts are ordered by urgency
    (critical, urgent, warning, info) and then by due date.
    """
    config = config or AlertConfig()
    as_of = as_of or date.today()
    days = days or config.alert_days
    months = max(1, math.ceil(days / 30))

    alerts = []
    for loan in loans:
        if loan.status not in (LoanStatus.ACTIVE, LoanStatus.DEFAULTED):
            continue
        refresh_status(loan, as_of)

        for due in upcoming_due_dates(loan, as_of, months):
            alert_type, message = _classify(due, config)
            alerts.append(
                DueDateAlert(
                    loan_id=loan.loan_id,
                    loan_name=loan.loan_name,
                    emi_number=due.emi_number,
                    due_date=due.due_date,
                    amount=due.amount,
                    status=due.status,
                    days_until_due=due.days_until_due,
                    days_overdue=due.days_overdue,
                    alert_type=alert_type,
                    message=message,
                )
            )

    return sort_alerts(alerts)


def sort_alerts(alerts: list[DueDateAlert]) -> list[DueDateAlert]:
    """Order alerts by urgency, then by due date."""
    return sorted(alerts, key=lambda a: (_URGENCY_ORDER[a.alert_type], a.due_date))


def assess_risk(loan: Loan, monthly_income: Decimal | int | float | None) -> RiskLevel:
    """Score a loan's affordability against monthly income.

    EMI/income above 50% scores 5, above 30% scores 3, otherwise 1; a
    rate above 12% adds 2 and a tenure above 36 months adds 2. Scores of
    8+ are high risk, 4+ moderate. Unknown income is treated as low risk.
    """
    if not monthly_income or monthly_income <= 0:
        return RiskLevel.LOW

    ratio = float(loan.emi_amount) / float(monthly_income)
    if ratio > 0.5:
        score = 5
    elif ratio > 0.3:
        score = 3
    else:
        score = 1

    if loan.interest_rate > 12:
        score += 2
    if loan.tenure_months > 36:
        score += 2

    if score >= 8:
        return RiskLevel.HIGH
    if score >= 4:
        return RiskLevel.MODERATE
    return RiskLevel.LOW
