"""Domain models for the loan engine."""

from emi_engine.models.base import Event
from emi_engine.models.enums import (
    AlertType,
    InstallmentStatus,
    LoanStatus,
    LoanType,
    PaymentFrequency,
    PaymentMethod,
    RiskLevel,
)
from emi_engine.models.loan import Installment, Loan, PaymentRecord

__all__ = [
    "AlertType",
    "Event",
    "Installment",
    "InstallmentStatus",
    "Loan",
    "LoanStatus",
    "LoanType",
    "PaymentFrequency",
    "PaymentMethod",
    "PaymentRecord",
    "RiskLevel",
]
