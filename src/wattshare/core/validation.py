"""Validation of proposed bill values.

The checks run in a fixed order and the issues come back in that order,
so the same input always produces the same list. The order is:

1. total kWh is a positive number
2. total amount is a positive number
3. top reading did not go backwards
4. bottom reading did not go backwards
5. the apartments together did not use more than the main meter
6. the date is a calendar date

Check 5 is skipped when check 1 already failed or a reading is not a
number, since there is nothing meaningful to compare against.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from wattshare.core.errors import ValidationError


class IssueCode(str, enum.Enum):
    """Machine-readable reason for a rejected value."""

    INVALID_KWH = "invalid_kwh"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_READING = "invalid_reading"
    TOP_REGRESSION = "top_regression"
    BOTTOM_REGRESSION = "bottom_regression"
    TENANTS_EXCEED_TOTAL = "tenants_exceed_total"
    INVALID_DATE = "invalid_date"
    NEGATIVE_READING = "negative_reading"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class ValidationIssue:
    """A single reason why proposed values cannot be accepted."""

    code: IssueCode
    field: str
    message: str


@dataclass(frozen=True)
class ValueLimits:
    """Upper sanity bounds for imported values."""

    max_amount: Decimal = Decimal("1000000")
    max_kwh: Decimal = Decimal("100000")
    max_reading: Decimal = Decimal("1000000")


def to_number(value: Any) -> Decimal | None:
    """
    Converts user input to a finite Decimal.

    Returns None for anything that is not a finite number: None, booleans,
    NaN, infinities and strings that do not parse.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def to_date(value: Any) -> date | None:
    """Accepts a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def validate_bill(
    candidate_date: Any,
    candidate_amount: Any,
    candidate_kwh: Any,
    candidate_top: Any,
    candidate_bottom: Any,
    prev_top: Decimal,
    prev_bottom: Decimal,
) -> list[ValidationIssue]:
    """
    Checks proposed bill values against the readings that precede them.

    Returns:
        The issues found, in check order. An empty list means the values
        can be committed.
    """
    issues: list[ValidationIssue] = []

    kwh = to_number(candidate_kwh)
    kwh_valid = kwh is not None and kwh > 0
    if not kwh_valid:
        issues.append(
            ValidationIssue(
                IssueCode.INVALID_KWH,
                "kwh",
                f"Total consumption must be a positive number, got {candidate_kwh!r}.",
            )
        )

    amount = to_number(candidate_amount)
    if amount is None or amount <= 0:
        issues.append(
            ValidationIssue(
                IssueCode.INVALID_AMOUNT,
                "amount",
                f"Bill amount must be a positive number, got {candidate_amount!r}.",
            )
        )

    top = to_number(candidate_top)
    if top is None:
        issues.append(
            ValidationIssue(
                IssueCode.INVALID_READING,
                "top",
                f"Top reading must be a number, got {candidate_top!r}.",
            )
        )
    elif top < prev_top:
        issues.append(
            ValidationIssue(
                IssueCode.TOP_REGRESSION,
                "top",
                f"Top reading must not be lower than the previous one ({top} < {prev_top}).",
            )
        )

    bottom = to_number(candidate_bottom)
    if bottom is None:
        issues.append(
            ValidationIssue(
                IssueCode.INVALID_READING,
                "bottom",
                f"Bottom reading must be a number, got {candidate_bottom!r}.",
            )
        )
    elif bottom < prev_bottom:
        issues.append(
            ValidationIssue(
                IssueCode.BOTTOM_REGRESSION,
                "bottom",
                "Bottom reading must not be lower than the previous one "
                f"({bottom} < {prev_bottom}).",
            )
        )

    if kwh_valid and top is not None and bottom is not None:
        tenants_total = (top - prev_top) + (bottom - prev_bottom)
        if tenants_total > kwh:
            issues.append(
                ValidationIssue(
                    IssueCode.TENANTS_EXCEED_TOTAL,
                    "kwh",
                    f"Apartments together used {tenants_total} kWh, "
                    f"more than the main meter's {kwh} kWh.",
                )
            )

    if to_date(candidate_date) is None:
        issues.append(
            ValidationIssue(
                IssueCode.INVALID_DATE,
                "date",
                f"Bill date must be a calendar date, got {candidate_date!r}.",
            )
        )

    return issues


def ensure_valid(*args: Any) -> None:
    """Runs ``validate_bill`` and raises ``ValidationError`` on any issue."""
    issues = validate_bill(*args)
    if issues:
        raise ValidationError(issues)


def structural_issues(
    amount: Decimal | None,
    kwh: Decimal | None,
    top: Decimal | None,
    bottom: Decimal | None,
    limits: ValueLimits | None = None,
) -> list[ValidationIssue]:
    """Checks that do not depend on previous readings, used for bulk import."""
    limits = limits or ValueLimits()
    issues: list[ValidationIssue] = []

    if kwh is None or kwh <= 0:
        issues.append(
            ValidationIssue(IssueCode.INVALID_KWH, "kwh", "Total consumption must be positive.")
        )
    elif kwh > limits.max_kwh:
        issues.append(
            ValidationIssue(
                IssueCode.OUT_OF_RANGE, "kwh", f"Total consumption above {limits.max_kwh}."
            )
        )

    if amount is None or amount <= 0:
        issues.append(
            ValidationIssue(IssueCode.INVALID_AMOUNT, "amount", "Bill amount must be positive.")
        )
    elif amount > limits.max_amount:
        issues.append(
            ValidationIssue(
                IssueCode.OUT_OF_RANGE, "amount", f"Bill amount above {limits.max_amount}."
            )
        )

    for name, reading in (("top", top), ("bottom", bottom)):
        if reading is None:
            issues.append(
                ValidationIssue(
                    IssueCode.INVALID_READING, name, f"{name.capitalize()} reading is missing."
                )
            )
        elif reading < 0:
            issues.append(
                ValidationIssue(
                    IssueCode.NEGATIVE_READING,
                    name,
                    f"{name.capitalize()} reading cannot be negative.",
                )
            )
        elif reading > limits.max_reading:
            issues.append(
                ValidationIssue(
                    IssueCode.OUT_OF_RANGE,
                    name,
                    f"{name.capitalize()} reading above {limits.max_reading}.",
                )
            )

    return issues
