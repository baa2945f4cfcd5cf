"""EMI (equated monthly installment) calculator."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from emi_engine.exceptions import EmiEngineError, InvalidLoanTermsError

WHOLE_UNIT = Decimal("1")
MONTHS_PER_YEAR = 12


def to_decimal(
    value: Decimal | int | float | str,
    error: type[EmiEngineError] = InvalidLoanTermsError,
) -> Decimal:
    """Convert a numeric input to Decimal without binary float artifacts.

    NaN and infinities are rejected with ``error``, like any other value
    that is not a finite number.
    """
    if isinstance(value, bool):
        raise error(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise error(f"Expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise error(f"Expected a finite number, got {value!r}")
    return result


def round_currency(value: Decimal) -> Decimal:
    """Round to whole currency units, halves away from zero."""
    return value.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def monthly_rate(annual_rate_percent: Decimal | int | float | str) -> Decimal:
    """Convert an annual percentage rate to a monthly fraction."""
    return to_decimal(annual_rate_percent) / Decimal(MONTHS_PER_YEAR * 100)


def raw_emi(principal: Decimal, rate: Decimal, tenure_months: int) -> Decimal:
    """Unrounded EMI for a monthly ``rate`` fraction."""
    if rate == 0:
        return principal / tenure_months

    growth = (1 + rate) ** tenure_months
    denominator = growth - 1
    if denominator == 0:
        raise InvalidLoanTermsError(
            f"Rate {rate} over {tenure_months} months does not amortize"
        )
    return principal * rate * growth / denominator


def calculate_emi(
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    tenure_months: int,
) -> Decimal:
    """Compute the fixed monthly installment for a loan.

    Parameters
    ----------
    principal : Decimal | int | float | str
        Amount borrowed, must be positive.
    annual_rate_percent : Decimal | int | float | str
        Annual interest rate in percent (0-100).
    tenure_months : int
        Number of monthly installments (at least 1).

    Returns
    -------
    Decimal
        EMI rounded to whole currency units.

    Raises
    ------
    InvalidLoanTermsError
        For non-positive principal, negative rate or tenure below 1, and
        for terms the whole-unit EMI cannot amortize: the rounded EMI does
        not exceed the first month's interest, or rounding down would
        leave more than one EMI unpaid after the last installment.
    """
    principal = to_decimal(principal)
    rate_percent = to_decimal(annual_rate_percent)

    if principal <= 0:
        raise InvalidLoanTermsError(f"Principal must be positive, got {principal}")
    if rate_percent < 0:
        raise InvalidLoanTermsError(f"Interest rate cannot be negative, got {rate_percent}")
    if isinstance(tenure_months, bool) or not isinstance(tenure_months, int) or tenure_months < 1:
        raise InvalidLoanTermsError(f"Tenure must be a positive integer, got {tenure_months!r}")

    rate = monthly_rate(rate_percent)
    exact = raw_emi(principal, rate, tenure_months)
    emi = round_currency(exact)

    if emi <= principal * rate:
        raise InvalidLoanTermsError(
            f"EMI {emi} does not reduce a balance of {principal} at {rate_percent}% a year"
        )
    if rounding_drift(exact, emi, rate, tenure_months) > emi:
        raise InvalidLoanTermsError(
            f"Rounding EMI to {emi} leaves more than one installment unpaid after {tenure_months} months"
        )
    return emi


def rounding_drift(exact: Decimal, emi: Decimal, rate: Decimal, tenure_months: int) -> Decimal:
    """Balance left after the last installment when ``emi`` replaces ``exact``.

    Negative when the rounded EMI overpays.
    """
    shortfall = exact - emi
    if rate == 0:
        return shortfall * tenure_months
    return shortfall * ((1 + rate) ** tenure_months - 1) / rate


@dataclass
class EmiQuote:
    """EMI figures for a set of terms, without creating a loan."""

    principal_amount: Decimal
    interest_rate: Decimal
    tenure_months: int
    emi_amount: Decimal
    total_amount: Decimal
    total_interest: Decimal


def quote_emi(
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    tenure_months: int,
) -> EmiQuote:
    """Quote EMI, total repayment and total interest for the given terms."""
    emi = calculate_emi(principal, annual_rate_percent, tenure_months)
    principal = to_decimal(principal)
    total = emi * tenure_months
    return EmiQuote(
        principal_amount=principal,
        interest_rate=to_decimal(annual_rate_percent),
        tenure_months=tenure_months,
        emi_amount=emi,
        total_amount=total,
        total_interest=total - principal,
    )
