"""Service for exchanging the ledger with spreadsheets as CSV."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from wattshare.core.bills import Bill, MainBill, Readings, new_bill_id
from wattshare.core.ledger import Ledger
from wattshare.core.snapshot import parse_bill_date
from wattshare.core.validation import ValueLimits, structural_issues

logger = logging.getLogger(__name__)

BOM = "\ufeff"

CSV_HEADER = [
    "date",
    "main.amount",
    "main.kwh",
    "readings.top",
    "consumptionTop",
    "costTop",
    "readings.bottom",
    "consumptionBottom",
    "costBottom",
    "commonKwh",
    "commonCost",
]

# Positions of the stored fields within a row; the rest are derived.
DATE_COL, AMOUNT_COL, KWH_COL, TOP_COL, BOTTOM_COL = 0, 1, 2, 3, 6


class ImportFileError(Exception):
    """The uploaded file cannot be imported at all."""


@dataclass(frozen=True)
class RowProblem:
    """Why a CSV row was skipped. ``row`` is the 1-based line in the file."""

    row: int
    reason: str


@dataclass
class ImportReport:
    imported: int = 0
    skipped: int = 0
    problems: list[RowProblem] = field(default_factory=list)

    def skip(self, row: int, reason: str) -> None:
        self.skipped += 1
        self.problems.append(RowProblem(row, reason))


def _parse_decimal(value: str) -> Decimal | None:
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _plain(value: Decimal) -> str:
    """Formats a number without exponent or trailing zeros."""
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")


class ExportService:
    """Handles exporting the ledger to CSV and importing bills back."""

    def __init__(
        self,
        min_columns: int = 9,
        max_file_bytes: int = 5 * 1024 * 1024,
        limits: ValueLimits | None = None,
    ):
        self._min_columns = min_columns
        self._max_file_bytes = max_file_bytes
        self._limits = limits or ValueLimits()

    def export_csv(self, ledger: Ledger) -> str:
        """
        Renders every bill with its derived figures, one row per bill.

        Consumption is exported raw, so a reading that went backwards shows
        up as a negative number in the spreadsheet.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for bill, metrics in ledger.metrics():
            writer.writerow(
                [
                    bill.date.isoformat(),
                    _plain(bill.main.amount),
                    _plain(bill.main.kwh),
                    _plain(bill.readings.top),
                    _plain(metrics.consumption_top),
                    f"{metrics.cost_top:.2f}",
                    _plain(bill.readings.bottom),
                    _plain(metrics.consumption_bottom),
                    f"{metrics.cost_bottom:.2f}",
                    _plain(metrics.common_kwh),
                    f"{metrics.common_cost:.2f}",
                ]
            )
        return BOM + buffer.getvalue()

    def export_csv_bytes(self, ledger: Ledger) -> bytes:
        return self.export_csv(ledger).encode("utf-8")

    def import_csv(self, content: bytes | str, ledger: Ledger) -> ImportReport:
        """
        Adds the bills found in a CSV file to the ledger.

        The first line is a header. Rows that are too short, fail the
        sanity checks, or repeat a date already in the ledger (or earlier
        in the file) are skipped and reported. Accepted rows are committed
        in one go.
        """
        if isinstance(content, bytes):
            if len(content) > self._max_file_bytes:
                raise ImportFileError(
                    f"File is too large ({len(content)} bytes, "
                    f"limit {self._max_file_bytes})."
                )
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ImportFileError("File is not UTF-8 text.") from exc
        else:
            text = content
        text = text.removeprefix(BOM)

        rows = [
            (line_number, row)
            for line_number, row in enumerate(csv.reader(io.StringIO(text)), start=1)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            raise ImportFileError("File is empty or has no data rows.")

        report = ImportReport()
        known_dates = {bill.date for bill in ledger.bills}
        new_bills: list[Bill] = []
        taken_ids = {bill.id for bill in ledger.bills}

        for line_number, row in rows[1:]:
            if len(row) < self._min_columns:
                report.skip(line_number, f"expected at least {self._min_columns} columns")
                continue

            raw_date = row[DATE_COL].strip()
            try:
                bill_date = parse_bill_date(raw_date)
            except (ValueError, OverflowError):
                report.skip(line_number, f"'{raw_date}' is not a date")
                continue

            amount = _parse_decimal(row[AMOUNT_COL])
            kwh = _parse_decimal(row[KWH_COL])
            top = _parse_decimal(row[TOP_COL])
            bottom = _parse_decimal(row[BOTTOM_COL])
            issues = structural_issues(amount, kwh, top, bottom, self._limits)
            if issues:
                report.skip(line_number, "; ".join(issue.message for issue in issues))
                continue

            if bill_date in known_dates:
                report.skip(line_number, f"a bill dated {bill_date} already exists")
                continue

            bill_id = new_bill_id()
            while bill_id in taken_ids:
                bill_id = new_bill_id()
            taken_ids.add(bill_id)
            known_dates.add(bill_date)
            new_bills.append(
                Bill(
                    id=bill_id,
                    date=bill_date,
                    main=MainBill(amount=amount, kwh=kwh),
                    readings=Readings(top=top, bottom=bottom),
                )
            )
            report.imported += 1

        if new_bills:
            ledger.replace_all([*ledger.bills, *new_bills], ledger.settings)
        logger.info(
            f"CSV import finished: {report.imported} imported, {report.skipped} skipped."
        )
        return report
