"""Custom exception hierarchy for emi-engine."""


class EmiEngineError(Exception):
    """Base exception for all emi-engine errors."""


class InvalidLoanTermsError(EmiEngineError):
    """Raised when loan terms are outside the accepted ranges."""


class EntityNotFoundError(EmiEngineError):
    """Raised when a referenced entity does not exist."""


class LoanNotFoundError(EntityNotFoundError):
    """Raised when a loan id is unknown to the store."""


class InstallmentNotFoundError(EntityNotFoundError):
    """Raised when an EMI number is outside the loan's schedule."""


class DuplicatePaymentError(EmiEngineError):
    """Raised when a payment targets an installment that is already paid."""


class InvalidPaymentError(EmiEngineError):
    """Raised when payment input is malformed (amount, late fee, notes)."""


class InvalidEntityStateError(EmiEngineError):
    """Raised when an entity is in an invalid state for the operation."""


class ConcurrentModificationError(EmiEngineError):
    """Raised when a loan was modified since it was read."""


class ConfigurationError(EmiEngineError):
    """Raised when configuration is invalid or missing."""


class SinkError(EmiEngineError):
    """Raised when a sink operation fails."""
