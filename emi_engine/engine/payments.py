"""Payment recording and derivation of running totals."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from emi_engine.engine.emi import to_decimal
from emi_engine.engine.status import refresh_status
from emi_engine.exceptions import (
    DuplicatePaymentError,
    InstallmentNotFoundError,
    InvalidEntityStateError,
    InvalidPaymentError,
)
from emi_engine.models.enums import InstallmentStatus, LoanStatus, PaymentMethod
from emi_engine.models.loan import ZERO, Loan, PaymentRecord

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 200


@dataclass
class PaymentTotals:
    """Running totals derived from a loan's payment log."""

    total_paid: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    remaining_balance: Decimal


def fold_payments(loan: Loan) -> PaymentTotals:
    """Derive running totals from the payment log and the schedule.

    Totals are plain sums over ``loan.payments``. The remaining balance
    trusts the precomputed schedule: it is the stored balance of the last
    installment in the unbroken run of paid installments from #1, capped
    at the principal. Paying a later EMI ahead of an earlier one therefore
    does not reduce the balance until the gap is filled, and extra money
    never bends the amortization curve. Once every installment is paid the
    rounding residual of the last row is written off.
    """
    total_paid = sum((p.amount for p in loan.payments), ZERO)
    principal_paid = sum((p.principal_paid for p in loan.payments), ZERO)
    interest_paid = sum((p.interest_paid for p in loan.payments), ZERO)

    remaining = loan.principal_amount
    for installment in sorted(loan.emi_schedule, key=lambda i: i.emi_number):
        if not installment.is_paid:
            break
        remaining = min(remaining, installment.remaining_balance)

    if loan.emi_schedule and all(i.is_paid for i in loan.emi_schedule):
        remaining = ZERO

    return PaymentTotals(
        total_paid=total_paid,
        principal_paid=principal_paid,
        interest_paid=interest_paid,
        remaining_balance=remaining,
    )


def apply_totals(loan: Loan) -> Loan:
    """Write the folded totals and next-EMI pointers onto the loan."""
    totals = fold_payments(loan)
    loan.total_paid = totals.total_paid
    loan.principal_paid = totals.principal_paid
    loan.interest_paid = totals.interest_paid
    loan.remaining_balance = totals.remaining_balance

    next_unpaid = loan.first_unpaid_installment()
    if next_unpaid is not None:
        loan.next_emi_date = next_unpaid.due_date
        loan.next_emi_amount = next_unpaid.emi_amount
    else:
        loan.next_emi_date = None
        loan.next_emi_amount = ZERO
    return loan


def _validate_payment_input(amount: Decimal, late_fee: Decimal, notes: str | None) -> None:
    if amount <= 0:
        raise InvalidPaymentError(f"Payment amount must be positive, got {amount}")
    if late_fee < 0:
        raise InvalidPaymentError(f"Late fee cannot be negative, got {late_fee}")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise InvalidPaymentError(f"Notes cannot be more than {MAX_NOTES_LENGTH} characters")


def record_payment(
    loan: Loan,
    amount: Decimal | int | float | str,
    emi_number: int | None = None,
    payment_date: date | None = None,
    payment_method: PaymentMethod | str = PaymentMethod.CASH,
    notes: str | None = None,
    late_fee: Decimal | int | float | str = ZERO,
    as_of: date | None = None,
) -> PaymentRecord:
    """Record a payment against one installment.

    Parameters
    ----------
    loan : Loan
        Loan to update in place.
    amount : Decimal | int | float | str
        Amount received.
    emi_number : int | None
        Installment being paid; the earliest unpaid one when omitted.
    payment_date : date | None
        Defaults to today.
    payment_method : PaymentMethod | str
        How the payment was made.
    notes : str | None
        Free text, at most 200 characters.
    late_fee : Decimal | int | float | str
        Portion of ``amount`` that is a late fee.
    as_of : date | None
        Date the loan status is re-derived for (defaults to today, not
        ``payment_date``, so a backdated payment still sees later
        installments that are overdue now).

    Returns
    -------
    PaymentRecord
        The appended payment record.

    Raises
    ------
    InstallmentNotFoundError
        If ``emi_number`` is outside the schedule.
    DuplicatePaymentError
        If the installment is already paid.
    InvalidEntityStateError
        If the loan is closed or has nothing left to pay.
    """
    amount = to_decimal(amount, InvalidPaymentError)
    late_fee = to_decimal(late_fee, InvalidPaymentError)
    payment_date = payment_date or date.today()
    _validate_payment_input(amount, late_fee, notes)

    if loan.is_terminal:
        raise InvalidEntityStateError(f"Loan {loan.loan_id} is {loan.status.value}")

    if emi_number is None:
        installment = loan.first_unpaid_installment()
        if installment is None:
            raise InvalidEntityStateError(f"No pending EMIs found for loan {loan.loan_id}")
    else:
        installment = loan.get_installment(emi_number)
        if installment is None:
            raise InstallmentNotFoundError(
                f"EMI #{emi_number} not found; loan {loan.loan_id} has {loan.tenure_months} installments"
            )

    if installment.is_paid:
        raise DuplicatePaymentError(f"EMI #{installment.emi_number} is already paid")

    interest_paid = installment.interest_amount
    principal_paid = amount - interest_paid - late_fee

    payment = PaymentRecord(
        payment_date=payment_date,
        amount=amount,
        emi_number=installment.emi_number,
        principal_paid=principal_paid,
        interest_paid=interest_paid,
        late_fee=late_fee,
        payment_method=PaymentMethod(payment_method),
        notes=notes,
    )
    loan.payments.append(payment)

    installment.status = InstallmentStatus.PAID
    installment.paid_date = payment_date
    installment.paid_amount = amount
    installment.late_fee = late_fee
    installment.days_overdue = 0

    apply_totals(loan)
    refresh_status(loan, as_of=as_of or date.today())
    loan.updated_at = datetime.now()

    logger.info(
        "Recorded payment of %s on loan %s for EMI #%d (remaining=%s, status=%s)",
        amount,
        loan.loan_id,
        installment.emi_number,
        loan.remaining_balance,
        loan.status.value,
        extra={"loan_id": loan.loan_id, "emi_number": installment.emi_number},
    )
    return payment


def close_loan_early(
    loan: Loan,
    payment_date: date | None = None,
    amount: Decimal | int | float | str | None = None,
    payment_method: PaymentMethod | str = PaymentMethod.CASH,
    notes: str | None = None,
) -> PaymentRecord:
    """Close a loan before its tenure ends (prepayment).

    The payoff is the outstanding balance plus the loan's prepayment
    charges unless ``amount`` is given. Every unpaid installment is
    settled and the loan moves to the terminal ``prepaid`` status.

    Raises
    ------
    InvalidEntityStateError
        If prepayment is not allowed or the loan is already closed.
    """
    if not loan.prepayment_allowed:
        raise InvalidEntityStateError(f"Prepayment is not allowed on loan {loan.loan_id}")
    if loan.is_terminal:
        raise InvalidEntityStateError(f"Loan {loan.loan_id} is already {loan.status.value}")

    first_unpaid = loan.first_unpaid_installment()
    if first_unpaid is None:
        raise InvalidEntityStateError(f"No pending EMIs found for loan {loan.loan_id}")

    payment_date = payment_date or date.today()
    outstanding = loan.remaining_balance
    payoff = (
        to_decimal(amount, InvalidPaymentError)
        if amount is not None
        else outstanding + loan.prepayment_charges
    )
    _validate_payment_input(payoff, ZERO, notes)
    charges = max(ZERO, payoff - outstanding)

    payment = PaymentRecord(
        payment_date=payment_date,
        amount=payoff,
        emi_number=first_unpaid.emi_number,
        principal_paid=payoff - charges,
        interest_paid=charges,
        late_fee=ZERO,
        payment_method=PaymentMethod(payment_method),
        notes=notes or "Loan closed early",
    )
    loan.payments.append(payment)

    for installment in loan.emi_schedule:
        if not installment.is_paid:
            installment.status = InstallmentStatus.PAID
            installment.paid_date = payment_date
            installment.days_overdue = 0
    first_unpaid.paid_amount = payoff

    apply_totals(loan)
    loan.status = LoanStatus.PREPAID
    loan.updated_at = datetime.now()

    logger.info(
        "Loan %s closed early with payoff %s", loan.loan_id, payoff, extra={"loan_id": loan.loan_id}
    )
    return payment
