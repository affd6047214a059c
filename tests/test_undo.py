"""Tests for undoing deletions."""

from decimal import Decimal

from conftest import make_draft
from wattshare.core.bills import BaselineSettings
from wattshare.core.undo import OperationKind, UndoCommand, UndoHistory


def _three_bills(ledger):
    return [
        ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520)),
        ledger.insert(make_draft("2024-02-01", 100, 100, 1100, 560)),
        ledger.insert(make_draft("2024-03-01", 100, 100, 1150, 600)),
    ]


def test_undo_restores_deleted_bill_exactly(ledger):
    bills = _three_bills(ledger)
    before = ledger.bills

    ledger.delete(bills[1].id)
    restored = ledger.undo()

    assert restored == bills[1]
    assert ledger.bills == before


def test_delete_offers_undo(ledger):
    bills = _three_bills(ledger)

    ledger.delete(bills[0].id)

    offer = ledger.pending_undo
    assert offer is not None
    assert offer.command.kind == OperationKind.DELETE
    assert offer.command.bill == bills[0]
    assert offer.command.index == 0


def test_undo_offer_expires(ledger, clock):
    bills = _three_bills(ledger)
    ledger.delete(bills[2].id)

    clock.advance(9)
    assert ledger.pending_undo is not None

    clock.advance(1)
    assert ledger.pending_undo is None
    assert ledger.undo() is None
    assert len(ledger) == 2


def test_new_mutation_supersedes_offer(ledger):
    bills = _three_bills(ledger)
    ledger.delete(bills[0].id)

    ledger.insert(make_draft("2024-04-01", 100, 100, 1200, 650))

    assert ledger.pending_undo is None
    assert ledger.undo() is None
    assert bills[0].id not in {bill.id for bill in ledger.bills}


def test_settings_change_supersedes_offer(ledger):
    bills = _three_bills(ledger)
    ledger.delete(bills[0].id)

    ledger.set_settings(BaselineSettings(top=Decimal("900"), bottom=Decimal("400")))

    assert ledger.undo() is None


def test_second_delete_replaces_offer(ledger):
    bills = _three_bills(ledger)

    ledger.delete(bills[0].id)
    ledger.delete(bills[1].id)

    assert ledger.pending_undo.command.bill == bills[1]
    assert ledger.undo() == bills[1]
    assert ledger.undo() is None
    assert [bill.id for bill in ledger.bills] == [bills[1].id, bills[2].id]


def test_undo_is_consumed_once(ledger):
    bills = _three_bills(ledger)
    ledger.delete(bills[0].id)

    assert ledger.undo() == bills[0]
    assert ledger.undo() is None
    assert len(ledger) == 3


def test_history_depth_is_bounded(clock, ledger):
    history = UndoHistory(max_depth=2, clock=clock)
    bills = _three_bills(ledger)

    for index, bill in enumerate(bills):
        history.record(UndoCommand(OperationKind.DELETE, bill, index))

    assert len(history) == 2
    assert [command.bill for command in history.commands] == bills[1:]


def test_take_pops_offered_command(clock, ledger):
    history = UndoHistory(clock=clock)
    bill = _three_bills(ledger)[0]
    command = UndoCommand(OperationKind.DELETE, bill, 0)

    history.record(command)

    assert history.take() is command
    assert len(history) == 0
    assert history.take() is None


def test_replace_all_clears_history(ledger):
    bills = _three_bills(ledger)
    ledger.delete(bills[0].id)

    ledger.replace_all(ledger.bills, ledger.settings)

    assert len(ledger.history) == 0
    assert ledger.undo() is None
