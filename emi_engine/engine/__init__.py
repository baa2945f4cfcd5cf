"""Loan amortization engine: EMI math, schedules, payments and status."""

from emi_engine.engine.emi import EmiQuote, calculate_emi, monthly_rate, quote_emi
from emi_engine.engine.lifecycle import (
    create_loan,
    recompute_derived_fields,
    update_terms,
    validate_terms,
)
from emi_engine.engine.payments import (
    PaymentTotals,
    close_loan_early,
    fold_payments,
    record_payment,
)
from emi_engine.engine.schedule import add_months, generate_schedule
from emi_engine.engine.status import (
    DueDate,
    DueDateAlert,
    InstallmentSummary,
    assess_risk,
    due_date_alerts,
    installment_summary,
    progress_percentage,
    refresh_status,
    upcoming_due_dates,
)

__all__ = [
    "DueDate",
    "DueDateAlert",
    "EmiQuote",
    "InstallmentSummary",
    "PaymentTotals",
    "add_months",
    "assess_risk",
    "calculate_emi",
    "close_loan_early",
    "create_loan",
    "due_date_alerts",
    "fold_payments",
    "generate_schedule",
    "installment_summary",
    "monthly_rate",
    "progress_percentage",
    "quote_emi",
    "record_payment",
    "recompute_derived_fields",
    "refresh_status",
    "update_terms",
    "upcoming_due_dates",
    "validate_terms",
]
