"""Enumeration types for loan entities."""

from enum import Enum


class LoanType(str, Enum):
    PERSONAL = "personal"
    HOME = "home"
    CAR = "car"
    EDUCATION = "education"
    BUSINESS = "business"
    GOLD = "gold"
    OTHER = "other"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"
    PREPAID = "prepaid"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    CHEQUE = "cheque"
    AUTO_DEBIT = "auto-debit"


class RiskLevel(str, Enum):
    LOW = "Low Risk"
    MODERATE = "Moderate Risk"
    HIGH = "High Risk"


class AlertType(str, Enum):
    CRITICAL = "critical"
    URGENT = "urgent"
    WARNING = "warning"
    INFO = "info"
