"""Conversion of loan records to JSON-safe dicts and flat rows."""

from dataclasses import asdict, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from emi_engine.models.loan import Loan


def serialize_value(value: Any) -> Any:
    """Make a value JSON-safe: money as strings, enums as values, dates as ISO."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def to_dict(obj: Any) -> dict:
    """Convert a dataclass (recursively) or dict to a JSON-safe dict."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return serialize_value(asdict(obj))
    if isinstance(obj, dict):
        return serialize_value(obj)
    return {"value": str(obj)}


def to_dict_fast(obj: Any) -> dict:
    """Convert a flat dataclass without the deep copy ``asdict`` makes.

    Nested dataclasses are left as they are; use ``to_dict`` for those.
    """
    return {f.name: serialize_value(getattr(obj, f.name)) for f in fields(obj)}


def loan_header(loan: Loan) -> dict:
    """Loan fields without the schedule and payment lists."""
    return {
        f.name: serialize_value(getattr(loan, f.name))
        for f in fields(loan)
        if f.name not in ("emi_schedule", "payments")
    }


def installment_rows(loan: Loan) -> list[dict]:
    """Flatten a loan's schedule into rows keyed by ``loan_id``."""
    return [{"loan_id": loan.loan_id, **to_dict_fast(i)} for i in loan.emi_schedule]


def payment_rows(loan: Loan) -> list[dict]:
    """Flatten a loan's payment log into rows keyed by ``loan_id``."""
    return [{"loan_id": loan.loan_id, **to_dict_fast(p)} for p in loan.payments]
