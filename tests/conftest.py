"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from emi_engine.engine import create_loan
from emi_engine.models import Loan
from emi_engine.service import LoanService


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def sample_user_id() -> str:
    """Sample user ID."""
    return "user-test-001"


@pytest.fixture
def sample_loan_id() -> str:
    """Sample loan ID."""
    return "loan-test-001"


@pytest.fixture
def start_date() -> date:
    """Loan start date; EMIs fall due on the 15th."""
    return date(2024, 1, 15)


@pytest.fixture
def loan(sample_user_id: str, sample_loan_id: str, start_date: date) -> Loan:
    """100000 at 12% over 12 months (EMI 8885)."""
    return create_loan(
        sample_user_id,
        Decimal("100000"),
        Decimal("12"),
        12,
        start_date,
        loan_id=sample_loan_id,
        loan_name="Test Personal Loan",
        lender="Test Bank",
    )


@pytest.fixture
def zero_rate_loan(sample_user_id: str, start_date: date) -> Loan:
    """10000 at 0% over 10 months (EMI 1000)."""
    return create_loan(sample_user_id, 10000, 0, 10, start_date, loan_id="loan-zero-001")


@pytest.fixture
def service() -> LoanService:
    """Fresh service with an empty store."""
    return LoanService()
