"""Amortization schedule generation."""

from calendar import monthrange
from datetime import date
from decimal import Decimal

from emi_engine.engine.emi import monthly_rate, round_currency, to_decimal
from emi_engine.models.enums import InstallmentStatus
from emi_engine.models.loan import Installment


def add_months(start: date, months: int, day: int | None = None) -> date:
    """Shift ``start`` by whole months.

    The day of month is ``day`` (or ``start.day``) clamped to the length of
    the target month, so Jan 31 + 1 month is Feb 28/29.
    """
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    target_day = day if day is not None else start.day
    return date(year, month, min(target_day, monthrange(year, month)[1]))


def generate_schedule(
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    tenure_months: int,
    start_date: date,
    emi_amount: Decimal,
    due_day: int | None = None,
) -> list[Installment]:
    """Build the full amortization schedule.

    Each period's interest accrues on the previous period's closing
    balance, so the loop is strictly sequential. Intermediate values stay
    unrounded; only the stored amounts are rounded to whole units. The
    final balance is left as computed (it may be a small residual).

    Parameters
    ----------
    principal : Decimal | int | float | str
        Amount borrowed.
    annual_rate_percent : Decimal | int | float | str
        Annual interest rate in percent.
    tenure_months : int
        Number of installments to emit.
    start_date : date
        Loan start; installment ``i`` falls due ``i`` months later.
    emi_amount : Decimal
        Fixed installment, as returned by ``calculate_emi``.
    due_day : int | None
        Day of month for due dates (defaults to ``start_date.day``).

    Returns
    -------
    list[Installment]
        Exactly ``tenure_months`` pending installments.
    """
    rate = monthly_rate(annual_rate_percent)
    balance = to_decimal(principal)
    emi = to_decimal(emi_amount)
    day = due_day or start_date.day

    schedule = []
    for i in range(1, tenure_months + 1):
        interest = balance * rate
        principal_part = emi - interest
        balance = max(Decimal("0"), balance - principal_part)

        schedule.append(
            Installment(
                emi_number=i,
                due_date=add_months(start_date, i, day),
                due_date_day=day,
                principal_amount=round_currency(principal_part),
                interest_amount=round_currency(interest),
                emi_amount=emi,
                remaining_balance=round_currency(balance),
                status=InstallmentStatus.PENDING,
            )
        )

    return schedule
