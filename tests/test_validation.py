"""Tests for bill validation."""

from datetime import date
from decimal import Decimal

import pytest

from wattshare.core.errors import ValidationError
from wattshare.core.validation import (
    IssueCode,
    ValueLimits,
    ensure_valid,
    structural_issues,
    to_number,
    validate_bill,
)

PREV_TOP = Decimal("1000")
PREV_BOTTOM = Decimal("500")


def _codes(issues):
    return [issue.code for issue in issues]


def test_valid_bill_has_no_issues():
    issues = validate_bill("2024-02-01", "300", "200", "1100", "560", PREV_TOP, PREV_BOTTOM)
    assert issues == []


def test_equal_readings_are_accepted():
    issues = validate_bill(date(2024, 2, 1), 10, 5, 1000, 500, PREV_TOP, PREV_BOTTOM)
    assert issues == []


def test_all_failures_are_reported_in_check_order():
    issues = validate_bill("not a date", "0", "-5", "900", "400", PREV_TOP, PREV_BOTTOM)

    assert _codes(issues) == [
        IssueCode.INVALID_KWH,
        IssueCode.INVALID_AMOUNT,
        IssueCode.TOP_REGRESSION,
        IssueCode.BOTTOM_REGRESSION,
        IssueCode.INVALID_DATE,
    ]


@pytest.mark.parametrize(
    "top, bottom, expected",
    [
        ("999", "500", [IssueCode.TOP_REGRESSION]),
        ("1000", "499.9", [IssueCode.BOTTOM_REGRESSION]),
        ("999", "499", [IssueCode.TOP_REGRESSION, IssueCode.BOTTOM_REGRESSION]),
    ],
)
def test_reading_regressions(top, bottom, expected):
    issues = validate_bill("2024-02-01", "100", "100", top, bottom, PREV_TOP, PREV_BOTTOM)
    assert _codes(issues) == expected


def test_apartments_exceeding_main_meter():
    issues = validate_bill("2024-02-01", "100", "100", "1080", "540", PREV_TOP, PREV_BOTTOM)

    assert _codes(issues) == [IssueCode.TENANTS_EXCEED_TOTAL]
    assert issues[0].field == "kwh"


def test_apartments_exactly_matching_main_meter_is_fine():
    issues = validate_bill("2024-02-01", "100", "120", "1080", "540", PREV_TOP, PREV_BOTTOM)
    assert issues == []


def test_exceed_check_skipped_when_kwh_invalid():
    issues = validate_bill("2024-02-01", "100", "abc", "5000", "5000", PREV_TOP, PREV_BOTTOM)
    assert _codes(issues) == [IssueCode.INVALID_KWH]


def test_exceed_check_skipped_when_reading_not_a_number():
    issues = validate_bill("2024-02-01", "100", "10", "lots", "5000", PREV_TOP, PREV_BOTTOM)
    assert _codes(issues) == [IssueCode.INVALID_READING]
    assert issues[0].field == "top"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("12.5", Decimal("12.5")),
        (" 7 ", Decimal("7")),
        (3, Decimal("3")),
        (Decimal("4.20"), Decimal("4.20")),
        ("", None),
        ("abc", None),
        ("NaN", None),
        ("inf", None),
        (True, None),
        (None, None),
        ([1], None),
    ],
)
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_ensure_valid_raises_with_issues():
    with pytest.raises(ValidationError) as exc_info:
        ensure_valid("2024-02-01", "-1", "100", "1010", "510", PREV_TOP, PREV_BOTTOM)

    assert _codes(exc_info.value.issues) == [IssueCode.INVALID_AMOUNT]


def test_ensure_valid_passes_silently():
    ensure_valid("2024-02-01", "100", "100", "1010", "510", PREV_TOP, PREV_BOTTOM)


def test_structural_issues_checks_limits_and_signs():
    limits = ValueLimits(max_amount=Decimal("1000"), max_kwh=Decimal("500"))

    issues = structural_issues(
        Decimal("5000"), Decimal("10"), Decimal("-1"), None, limits
    )

    assert _codes(issues) == [
        IssueCode.OUT_OF_RANGE,
        IssueCode.NEGATIVE_READING,
        IssueCode.INVALID_READING,
    ]
    assert [issue.field for issue in issues] == ["amount", "top", "bottom"]
