"""In-memory loan store."""

from emi_engine.store.loans import LoanStore, PortfolioSummary, UpcomingEmi

__all__ = ["LoanStore", "PortfolioSummary", "UpcomingEmi"]
