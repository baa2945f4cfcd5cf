"""emi-engine: loan amortization and EMI schedule engine."""

__version__ = "0.1.0"
