"""Loan creation, term validation and derived-field recomputation."""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

from emi_engine.config import LoanLimits
from emi_engine.engine.emi import calculate_emi, to_decimal
from emi_engine.engine.schedule import add_months, generate_schedule
from emi_engine.exceptions import InvalidEntityStateError, InvalidLoanTermsError
from emi_engine.models.enums import LoanStatus, LoanType, PaymentFrequency
from emi_engine.models.loan import ZERO, Loan

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = LoanLimits()

MAX_DUE_DAY = 28


def validate_terms(
    principal_amount: Decimal,
    interest_rate: Decimal,
    tenure_months: int,
    installment_due_day: int | None = None,
    limits: LoanLimits | None = None,
) -> None:
    """Raise ``InvalidLoanTermsError`` if any term is out of range."""
    limits = limits or DEFAULT_LIMITS

    if principal_amount <= 0:
        raise InvalidLoanTermsError(f"Principal amount must be positive, got {principal_amount}")

    if interest_rate < 0 or interest_rate > limits.max_interest_rate:
        raise InvalidLoanTermsError(
            f"Interest rate must be between 0 and {limits.max_interest_rate}, got {interest_rate}"
        )

    if isinstance(tenure_months, bool) or not isinstance(tenure_months, int):
        raise InvalidLoanTermsError(f"Tenure must be a whole number of months, got {tenure_months!r}")

    if not limits.min_tenure_months <= tenure_months <= limits.max_tenure_months:
        raise InvalidLoanTermsError(
            f"Tenure must be between {limits.min_tenure_months} and "
            f"{limits.max_tenure_months} months, got {tenure_months}"
        )

    if installment_due_day is not None and not 1 <= installment_due_day <= MAX_DUE_DAY:
        raise InvalidLoanTermsError(
            f"Installment due day must be between 1 and {MAX_DUE_DAY}, got {installment_due_day}"
        )


def recompute_derived_fields(loan: Loan) -> Loan:
    """Recompute EMI, totals, dates, balance and schedule from the terms.

    Runs in a fixed order: EMI first, then totals, end date, opening
    balance, next-EMI pointers and finally a fresh schedule. Any previous
    schedule is discarded.
    """
    loan.emi_amount = calculate_emi(loan.principal_amount, loan.interest_rate, loan.tenure_months)

    loan.total_amount = loan.emi_amount * loan.tenure_months
    loan.total_interest = loan.total_amount - loan.principal_amount

    loan.end_date = add_months(loan.start_date, loan.tenure_months)

    loan.remaining_balance = loan.principal_amount

    loan.next_emi_date = add_months(loan.start_date, 1, loan.due_day)
    loan.next_emi_amount = loan.emi_amount

    loan.emi_schedule = generate_schedule(
        principal=loan.principal_amount,
        annual_rate_percent=loan.interest_rate,
        tenure_months=loan.tenure_months,
        start_date=loan.start_date,
        emi_amount=loan.emi_amount,
        due_day=loan.due_day,
    )

    logger.debug(
        "Recomputed loan %s: emi=%s total=%s installments=%d",
        loan.loan_id,
        loan.emi_amount,
        loan.total_amount,
        len(loan.emi_schedule),
    )
    return loan


def create_loan(
    user_id: str,
    principal_amount: Decimal | int | float | str,
    interest_rate: Decimal | int | float | str,
    tenure_months: int,
    start_date: date,
    payment_frequency: PaymentFrequency | str = PaymentFrequency.MONTHLY,
    *,
    loan_id: str | None = None,
    installment_due_day: int | None = None,
    loan_type: LoanType | str = LoanType.PERSONAL,
    loan_name: str = "",
    lender: str = "",
    limits: LoanLimits | None = None,
    **metadata,
) -> Loan:
    """Create a fully populated loan.

    Parameters
    ----------
    user_id : str
        Owning user.
    principal_amount : Decimal | int | float | str
        Amount borrowed.
    interest_rate : Decimal | int | float | str
        Annual interest rate in percent.
    tenure_months : int
        Number of monthly installments.
    start_date : date
        Disbursement date; first EMI falls due one month later.
    payment_frequency : PaymentFrequency | str
        Stored as metadata; the schedule is always monthly.
    loan_id : str | None
        Explicit id, generated when omitted.
    installment_due_day : int | None
        Day of month (1-28) installments fall due.
    loan_type, loan_name, lender
        Descriptive metadata.
    limits : LoanLimits | None
        Accepted term ranges.
    **metadata
        Any other ``Loan`` field (description, tags, charges, ...).

    Returns
    -------
    Loan
        Loan with EMI, totals, dates and schedule computed.
    """
    principal = to_decimal(principal_amount)
    rate = to_decimal(interest_rate)
    validate_terms(principal, rate, tenure_months, installment_due_day, limits)

    loan = Loan(
        loan_id=loan_id or str(uuid.uuid4()),
        user_id=user_id,
        principal_amount=principal,
        interest_rate=rate,
        tenure_months=tenure_months,
        start_date=start_date,
        payment_frequency=PaymentFrequency(payment_frequency),
        installment_due_day=installment_due_day,
        loan_type=LoanType(loan_type),
        loan_name=loan_name,
        lender=lender,
        **metadata,
    )
    recompute_derived_fields(loan)

    logger.info(
        "Created loan %s for user %s: principal=%s rate=%s%% tenure=%d emi=%s",
        loan.loan_id,
        user_id,
        principal,
        rate,
        tenure_months,
        loan.emi_amount,
        extra={"loan_id": loan.loan_id, "user_id": user_id},
    )
    return loan


def update_terms(
    loan: Loan,
    principal_amount: Decimal | int | float | str | None = None,
    interest_rate: Decimal | int | float | str | None = None,
    tenure_months: int | None = None,
    start_date: date | None = None,
    installment_due_day: int | None = None,
    limits: LoanLimits | None = None,
) -> Loan:
    """Modify loan terms and rebuild every derived field.

    Refused once any payment is recorded: a rebuilt schedule would drop
    the paid installments.

    Raises
    ------
    InvalidEntityStateError
        If the loan already has payments.
    InvalidLoanTermsError
        If the new terms are out of range.
    """
    if loan.payments:
        raise InvalidEntityStateError(
            f"Loan {loan.loan_id} has {len(loan.payments)} payment(s); terms cannot be modified"
        )

    principal = to_decimal(principal_amount) if principal_amount is not None else loan.principal_amount
    rate = to_decimal(interest_rate) if interest_rate is not None else loan.interest_rate
    tenure = tenure_months if tenure_months is not None else loan.tenure_months
    due_day = installment_due_day if installment_due_day is not None else loan.installment_due_day

    validate_terms(principal, rate, tenure, due_day, limits)

    loan.principal_amount = principal
    loan.interest_rate = rate
    loan.tenure_months = tenure
    loan.installment_due_day = due_day
    if start_date is not None:
        loan.start_date = start_date

    recompute_derived_fields(loan)
    loan.total_paid = ZERO
    loan.principal_paid = ZERO
    loan.interest_paid = ZERO
    loan.status = LoanStatus.ACTIVE
    loan.updated_at = datetime.now()

    logger.info(
        "Updated terms of loan %s: principal=%s rate=%s%% tenure=%d emi=%s",
        loan.loan_id,
        principal,
        rate,
        tenure,
        loan.emi_amount,
        extra={"loan_id": loan.loan_id},
    )
    return loan
