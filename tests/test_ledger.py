"""Tests for the bill ledger."""

import json
from datetime import date
from decimal import Decimal

import pytest

from conftest import make_draft
from wattshare.core.bills import BaselineSettings, MainBill, Readings
from wattshare.core.errors import (
    BaselineNotSetError,
    DuplicateIdError,
    MalformedBackupError,
    NotFoundError,
    StorageQuotaError,
    ValidationError,
)
from wattshare.core.ledger import ChangeKind, Ledger
from wattshare.core.snapshot import LedgerSnapshot
from wattshare.core.storage import MemoryStore
from wattshare.core.validation import IssueCode


def test_insert_keeps_bills_sorted_by_date(ledger):
    ledger.insert(make_draft("2024-03-01", 100, 100, 1200, 600))
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560))

    assert [bill.date.month for bill in ledger.bills] == [1, 2, 3]


def test_insert_assigns_unique_ids(ledger):
    first = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    second = ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560))

    assert first.id != second.id
    assert ledger.get(second.id) == second


def test_insert_requires_baseline(store):
    ledger = Ledger(store)

    with pytest.raises(BaselineNotSetError):
        ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    assert len(ledger) == 0


def test_insert_gives_up_on_colliding_ids(ledger):
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520), id_factory=lambda: "same")

    with pytest.raises(DuplicateIdError):
        ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560), id_factory=lambda: "same")

    assert len(ledger) == 1


def test_previous_readings_thread_through_date_order(store):
    """The readings before a bill are those of the bill dated just before it."""
    ledger = Ledger(store)
    ledger.set_settings(BaselineSettings(top=Decimal("100"), bottom=Decimal("50")))
    jan = ledger.insert(make_draft("2024-01-01", 60, 40, 120, 60))
    feb = ledger.insert(make_draft("2024-02-01", 60, 50, 150, 80))
    mar = ledger.insert(make_draft("2024-03-01", 30, 20, 110, 90))

    assert ledger.previous_readings_for(jan.id) == Readings(Decimal("100"), Decimal("50"))
    assert ledger.previous_readings_for(mar.id) == Readings(Decimal("150"), Decimal("80"))
    assert ledger.previous_readings_for() == mar.readings

    metrics = dict((bill.id, m) for bill, m in ledger.metrics())
    assert metrics[feb.id].consumption_top == Decimal("30")
    assert metrics[mar.id].consumption_top == Decimal("-40")
    assert metrics[mar.id].has_anomaly is True


def test_get_unknown_bill_raises(ledger):
    with pytest.raises(NotFoundError):
        ledger.get("missing")


def test_update_unknown_bill_raises(ledger):
    with pytest.raises(NotFoundError):
        ledger.update("missing", main=MainBill(Decimal("1"), Decimal("1")))


def test_update_changes_fields_and_resorts(ledger):
    jan = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    feb = ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560))

    updated = ledger.update(jan.id, date=date(2024, 3, 1), main=MainBill(Decimal("90"), Decimal("80")))

    assert updated.id == jan.id
    assert updated.main.amount == Decimal("90")
    assert updated.readings == jan.readings
    assert [bill.id for bill in ledger.bills] == [feb.id, jan.id]


def test_delete_removes_bill(ledger):
    bill = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    deleted = ledger.delete(bill.id)

    assert deleted == bill
    assert len(ledger) == 0
    with pytest.raises(NotFoundError):
        ledger.delete(bill.id)


def test_observers_hear_every_mutation(ledger):
    changes = []
    unsubscribe = ledger.subscribe(changes.append)

    bill = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    ledger.delete(bill.id)
    ledger.set_settings(BaselineSettings(top=Decimal("1"), bottom=Decimal("2")))
    unsubscribe()
    ledger.clear()

    assert [change.kind for change in changes] == [
        ChangeKind.BILLS,
        ChangeKind.BILLS,
        ChangeKind.SETTINGS,
    ]
    assert changes[0].bills == (bill,)
    assert changes[1].bills == ()


def test_quota_failure_still_notifies_and_keeps_memory_state():
    # Room for the settings document but not for a bill list.
    store = MemoryStore(quota_bytes=60)
    ledger = Ledger(store)
    ledger.set_settings(BaselineSettings(top=Decimal("1000"), bottom=Decimal("500")))
    changes = []
    ledger.subscribe(changes.append)

    with pytest.raises(StorageQuotaError):
        ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    assert len(ledger) == 1
    assert len(changes) == 1
    assert changes[0].bills == ledger.bills
    assert store.load("bills") is None
    assert store.load("settings") is not None


def test_load_round_trip(store, ledger):
    ledger.insert(make_draft("2024-02-01", "300.5", 200, "1100.25", 560))
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    reloaded = Ledger.load(store)

    assert reloaded.bills == ledger.bills
    assert reloaded.settings == ledger.settings
    assert reloaded.bills[1].main.amount == Decimal("300.5")


def test_load_empty_store():
    ledger = Ledger.load(MemoryStore())

    assert ledger.bills == ()
    assert ledger.settings.is_set is False


def test_load_corrupted_json_raises():
    store = MemoryStore()
    store.save("bills", "[{not json")

    with pytest.raises(MalformedBackupError):
        Ledger.load(store)


def test_load_wrong_shape_raises():
    store = MemoryStore()
    store.save("bills", json.dumps([{"date": "2024-01-01"}]))

    with pytest.raises(MalformedBackupError) as exc_info:
        Ledger.load(store)

    assert exc_info.value.record == 1


def test_replace_all_rejects_repeated_ids(ledger):
    bill = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    with pytest.raises(DuplicateIdError) as exc_info:
        ledger.replace_all([bill, bill])

    assert exc_info.value.bill_id == bill.id
    assert ledger.bills == (bill,)


def test_restore_replaces_everything(ledger):
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    other = Ledger(MemoryStore())
    other.set_settings(BaselineSettings(top=Decimal("5"), bottom=Decimal("6")))
    kept = other.insert(make_draft("2023-05-01", 10, 10, 8, 9))

    ledger.restore(LedgerSnapshot(bills=other.bills, settings=other.settings))

    assert ledger.bills == (kept,)
    assert ledger.settings == BaselineSettings(top=Decimal("5"), bottom=Decimal("6"))


def test_clear_removes_stored_keys(store, ledger):
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))

    ledger.clear()

    assert ledger.bills == ()
    assert ledger.settings.is_set is False
    assert store.load("bills") is None
    assert store.load("settings") is None


def test_validate_uses_current_previous_readings(ledger):
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    draft = make_draft("2024-02-01", 100, 100, 1060, 530)
    ledger.validate(draft)

    # Another bill lands after the draft was first checked.
    ledger.insert(make_draft("2024-01-15", 100, 100, 1100, 540))

    with pytest.raises(ValidationError) as exc_info:
        ledger.validate(draft)

    assert [issue.code for issue in exc_info.value.issues] == [
        IssueCode.TOP_REGRESSION,
        IssueCode.BOTTOM_REGRESSION,
    ]


def test_validate_edited_bill_against_its_predecessor(ledger):
    jan = ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    feb = ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560))

    ledger.validate(make_draft("2024-02-01", 100, 100, 1060, 530), feb.id)
    with pytest.raises(ValidationError):
        ledger.validate(make_draft("2024-01-01", 100, 100, 990, 520), jan.id)
    with pytest.raises(NotFoundError):
        ledger.validate(make_draft("2024-01-01", 100, 100, 1050, 520), "missing")
