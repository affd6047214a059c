"""Tests for the CSV export service."""

from decimal import Decimal

import pytest

from conftest import make_draft
from wattshare.core.bills import BaselineSettings
from wattshare.core.ledger import Ledger
from wattshare.core.storage import MemoryStore
from wattshare.services.export import BOM, CSV_HEADER, ExportService, ImportFileError

HEADER_LINE = ",".join(CSV_HEADER)


@pytest.fixture
def export_service() -> ExportService:
    return ExportService()


def test_export_csv_rows(ledger, export_service):
    ledger.insert(make_draft("2024-02-01", 300, 200, 1100, 560))
    ledger.insert(make_draft("2024-03-01", "150.5", 100, 1050, 600))

    lines = export_service.export_csv(ledger).splitlines()

    assert lines[0] == BOM + HEADER_LINE
    assert lines[1] == "2024-02-01,300,200,1100,100,150.00,560,60,90.00,40,60.00"
    # Top went backwards: raw consumption and negative cost are kept.
    assert lines[2] == "2024-03-01,150.5,100,1050,-50,-75.25,600,40,60.20,110,165.55"


def test_export_empty_ledger_has_only_header(ledger, export_service):
    assert export_service.export_csv(ledger) == BOM + HEADER_LINE + "\n"


def test_import_adds_bills_and_reports_skips(ledger, export_service):
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    content = "\n".join(
        [
            HEADER_LINE,
            "2024-01-01,100,100,1050,50,50.00,520,20,20.00,30,30.00",
            "2024-02-01,300,200,1100,,,560,,",
            "2024-03-01,300",
            "",
            "2024-04-01,-5,200,1200,,,600,,",
            "2024-02-01,300,200,1100,,,560,,",
            "someday,300,200,1100,,,560,,",
            "2024-05-01,300,200,1300,,,700,,",
        ]
    )

    report = export_service.import_csv((BOM + content).encode("utf-8"), ledger)

    assert report.imported == 2
    assert report.skipped == 5
    assert [problem.row for problem in report.problems] == [2, 4, 6, 7, 8]
    assert [bill.date.isoformat() for bill in ledger.bills] == [
        "2024-01-01",
        "2024-02-01",
        "2024-05-01",
    ]
    assert ledger.settings == BaselineSettings(top=Decimal("1000"), bottom=Decimal("500"))


def test_import_round_trips_export(ledger, export_service):
    ledger.insert(make_draft("2024-02-01", "300.25", 200, 1100, 560))
    exported = export_service.export_csv_bytes(ledger)

    target = Ledger(MemoryStore())
    target.set_settings(ledger.settings)
    report = export_service.import_csv(exported, target)

    assert report.imported == 1
    imported = target.bills[0]
    original = ledger.bills[0]
    assert (imported.date, imported.main, imported.readings) == (
        original.date,
        original.main,
        original.readings,
    )


@pytest.mark.parametrize(
    "content",
    [b"", HEADER_LINE.encode("utf-8"), b"\xff\xfe\x00garbage"],
)
def test_import_rejects_unusable_files(ledger, export_service, content):
    with pytest.raises(ImportFileError):
        export_service.import_csv(content, ledger)


def test_import_rejects_oversized_file(ledger):
    service = ExportService(max_file_bytes=10)

    with pytest.raises(ImportFileError):
        service.import_csv(b"x" * 11, ledger)


@pytest.mark.parametrize("cell", ["1", "March 2024", "15"])
def test_import_skips_incomplete_dates(ledger, export_service, cell):
    content = "\n".join([HEADER_LINE, f"{cell},300,200,1100,,,560,,"])

    report = export_service.import_csv(content, ledger)

    assert report.imported == 0
    assert [problem.row for problem in report.problems] == [2]
    assert len(ledger) == 0
