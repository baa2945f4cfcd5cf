"""In-memory loan store with per-loan locking and version checks."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterator

from emi_engine.exceptions import (
    ConcurrentModificationError,
    InvalidEntityStateError,
    LoanNotFoundError,
)
from emi_engine.models.enums import LoanStatus, LoanType
from emi_engine.models.loan import ZERO, Loan


@dataclass
class BreakdownRow:
    """Aggregate for one loan type or status."""

    key: str
    count: int = 0
    total_principal: Decimal = ZERO
    total_remaining: Decimal = ZERO


@dataclass
class PortfolioSummary:
    """Totals across a user's loans."""

    total_loans: int
    total_principal: Decimal
    total_remaining: Decimal
    total_paid: Decimal
    total_interest: Decimal
    avg_interest_rate: Decimal
    type_breakdown: list[BreakdownRow] = field(default_factory=list)
    status_breakdown: list[BreakdownRow] = field(default_factory=list)


@dataclass
class UpcomingEmi:
    """Next EMI of an active loan."""

    loan_id: str
    loan_name: str
    loan_type: LoanType
    lender: str
    next_emi_date: date
    next_emi_amount: Decimal
    days_until_due: int
    remaining_balance: Decimal


@dataclass
class LoanStore:
    """In-memory store for loans, indexed by owner.

    Callers mutate a loan inside ``locked(loan_id)`` and then ``save`` it,
    which bumps ``loan.version``. Passing ``expected_version`` to ``save``
    turns it into an optimistic compare-and-set.
    """

    loans: dict[str, Loan] = field(default_factory=dict)

    # Relationship indexes
    _user_loans: dict[str, list[str]] = field(default_factory=dict)

    _locks: dict[str, threading.RLock] = field(default_factory=dict)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock)

    def add_loan(self, loan: Loan) -> None:
        """Add a new loan to the store."""
        with self._registry_lock:
            if loan.loan_id in self.loans:
                raise InvalidEntityStateError(f"Loan {loan.loan_id} already exists")
            self.loans[loan.loan_id] = loan
            self._user_loans.setdefault(loan.user_id, []).append(loan.loan_id)
            self._locks[loan.loan_id] = threading.RLock()

    def get_loan(self, loan_id: str) -> Loan:
        """Get a loan by id."""
        try:
            return self.loans[loan_id]
        except KeyError:
            raise LoanNotFoundError(f"Loan {loan_id} not found") from None

    def remove_loan(self, loan_id: str) -> Loan:
        """Remove a loan and return it."""
        with self._registry_lock:
            loan = self.get_loan(loan_id)
            del self.loans[loan_id]
            self._user_loans[loan.user_id].remove(loan_id)
            self._locks.pop(loan_id, None)
            return loan

    @contextmanager
    def locked(self, loan_id: str) -> Iterator[Loan]:
        """Hold the loan's lock and yield the loan."""
        lock = self._locks.get(loan_id)
        if lock is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        with lock:
            yield self.get_loan(loan_id)

    def check_version(self, loan_id: str, expected_version: int | None) -> Loan:
        """Return the stored loan if it is still at ``expected_version``."""
        stored = self.get_loan(loan_id)
        if expected_version is not None and stored.version != expected_version:
            raise ConcurrentModificationError(
                f"Loan {loan_id} is at version {stored.version}, expected {expected_version}"
            )
        return stored

    def save(self, loan: Loan, expected_version: int | None = None) -> Loan:
        """Commit a mutated loan, bumping its version.

        Raises
        ------
        ConcurrentModificationError
            If ``expected_version`` no longer matches the stored loan.
        """
        stored = self.check_version(loan.loan_id, expected_version)
        loan.version = stored.version + 1
        loan.updated_at = datetime.now()
        self.loans[loan.loan_id] = loan
        return loan

    # Query methods
    def get_user_loans(
        self,
        user_id: str,
        status: LoanStatus | None = None,
        loan_type: LoanType | None = None,
    ) -> list[Loan]:
        """Get a user's loans, newest start date first."""
        loans = [self.loans[lid] for lid in self._user_loans.get(user_id, [])]
        if status is not None:
            loans = [loan for loan in loans if loan.status == status]
        if loan_type is not None:
            loans = [loan for loan in loans if loan.loan_type == loan_type]
        return sorted(loans, key=lambda loan: loan.start_date, reverse=True)

    def portfolio_summary(self, user_id: str, status: LoanStatus | None = None) -> PortfolioSummary:
        """Aggregate principal, balances and interest across a user's loans."""
        loans = self.get_user_loans(user_id, status=status)

        by_type: dict[str, BreakdownRow] = {}
        by_status: dict[str, BreakdownRow] = {}
        for loan in loans:
            for index, key in ((by_type, loan.loan_type.value), (by_status, loan.status.value)):
                row = index.setdefault(key, BreakdownRow(key=key))
                row.count += 1
                row.total_principal += loan.principal_amount
                row.total_remaining += loan.remaining_balance

        avg_rate = ZERO
        if loans:
            avg_rate = (sum((loan.interest_rate for loan in loans), ZERO) / len(loans)).quantize(
                Decimal("0.01")
            )

        return PortfolioSummary(
            total_loans=len(loans),
            total_principal=sum((loan.principal_amount for loan in loans), ZERO),
            total_remaining=sum((loan.remaining_balance for loan in loans), ZERO),
            total_paid=sum((loan.total_paid for loan in loans), ZERO),
            total_interest=sum((loan.total_interest for loan in loans), ZERO),
            avg_interest_rate=avg_rate,
            type_breakdown=sorted(by_type.values(), key=lambda r: r.total_principal, reverse=True),
            status_breakdown=list(by_status.values()),
        )

    def upcoming_emis(self, user_id: str, as_of: date | None = None, days: int = 30) -> list[UpcomingEmi]:
        """Next EMIs of active loans falling due within ``days``."""
        as_of = as_of or date.today()
        horizon = as_of + timedelta(days=days)

        upcoming = [
            UpcomingEmi(
                loan_id=loan.loan_id,
                loan_name=loan.loan_name or "Unnamed Loan",
                loan_type=loan.loan_type,
                lender=loan.lender,
                next_emi_date=loan.next_emi_date,
                next_emi_amount=loan.next_emi_amount,
                days_until_due=(loan.next_emi_date - as_of).days,
                remaining_balance=loan.remaining_balance,
            )
            for loan in self.get_user_loans(user_id, status=LoanStatus.ACTIVE)
            if loan.next_emi_date is not None and loan.next_emi_date <= horizon
        ]
        return sorted(upcoming, key=lambda u: u.next_emi_date)

    def summary(self) -> dict[str, int]:
        """Return summary counts of stored entities."""
        return {
            "users": len(self._user_loans),
            "loans": len(self.loans),
            "installments": sum(len(loan.emi_schedule) for loan in self.loans.values()),
            "payments": sum(len(loan.payments) for loan in self.loans.values()),
        }
