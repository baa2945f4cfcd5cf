"""Sample data generators."""

from emi_engine.generators.loan import LoanGenerator, PaymentSimulator

__all__ = ["LoanGenerator", "PaymentSimulator"]
