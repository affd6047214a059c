"""The bill ledger: the single owned copy of bills and baseline readings."""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from wattshare.core.bills import (
    BaselineSettings,
    Bill,
    BillDraft,
    MainBill,
    Readings,
    new_bill_id,
)
from wattshare.core.calculations import BillMetrics, calculate_bill_metrics
from wattshare.core.errors import (
    BaselineNotSetError,
    DuplicateIdError,
    MalformedBackupError,
    NotFoundError,
)
from wattshare.core.snapshot import (
    LedgerSnapshot,
    decode_bills,
    decode_settings,
    dump_bills,
    dump_settings,
    loads,
)
from wattshare.core.storage import KeyValueStore
from wattshare.core.undo import OperationKind, UndoCommand, UndoHistory, UndoOffer
from wattshare.core.validation import ensure_valid

logger = logging.getLogger(__name__)

BILLS_KEY = "bills"
SETTINGS_KEY = "settings"
MAX_ID_ATTEMPTS = 5


class ChangeKind(str, enum.Enum):
    BILLS = "bills"
    SETTINGS = "settings"
    ALL = "all"


@dataclass(frozen=True)
class LedgerChange:
    """What observers receive after every mutation."""

    kind: ChangeKind
    bills: tuple[Bill, ...]
    settings: BaselineSettings


Listener = Callable[[LedgerChange], None]


def _sort_key(bill: Bill) -> date:
    return bill.date


class Ledger:
    """
    Ordered bill collection plus baseline readings.

    Bills are always sorted by date. Every mutation is persisted through the
    key-value store and then broadcast to subscribers. Values handed out are
    immutable, so callers cannot change the ledger behind its back.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        bills_key: str = BILLS_KEY,
        settings_key: str = SETTINGS_KEY,
        history: UndoHistory | None = None,
    ):
        self._store = store
        self._bills_key = bills_key
        self._settings_key = settings_key
        self._bills: list[Bill] = []
        self._settings = BaselineSettings()
        self._history = history or UndoHistory()
        self._listeners: list[Listener] = []

    @classmethod
    def load(
        cls,
        store: KeyValueStore,
        *,
        bills_key: str = BILLS_KEY,
        settings_key: str = SETTINGS_KEY,
        history: UndoHistory | None = None,
    ) -> Ledger:
        """Builds a ledger from whatever the store already holds."""
        ledger = cls(store, bills_key=bills_key, settings_key=settings_key, history=history)

        raw_bills = store.load(bills_key)
        raw_settings = store.load(settings_key)
        try:
            if raw_bills:
                ledger._bills = sorted(decode_bills(loads(raw_bills)), key=_sort_key)
            if raw_settings:
                ledger._settings = decode_settings(loads(raw_settings))
        except MalformedBackupError as exc:
            logger.error(f"Stored ledger data is corrupted: {exc}")
            raise
        except ValueError as exc:
            logger.error(f"Stored ledger data is not valid JSON: {exc}")
            raise MalformedBackupError(f"stored data is not valid JSON: {exc}") from exc

        logger.info(f"Ledger loaded with {len(ledger._bills)} bills.")
        return ledger

    # --- Read access ---

    @property
    def bills(self) -> tuple[Bill, ...]:
        return tuple(self._bills)

    @property
    def settings(self) -> BaselineSettings:
        return self._settings

    @property
    def history(self) -> UndoHistory:
        return self._history

    @property
    def pending_undo(self) -> UndoOffer | None:
        return self._history.pending

    def __len__(self) -> int:
        return len(self._bills)

    def _index_of(self, bill_id: str) -> int:
        for index, bill in enumerate(self._bills):
            if bill.id == bill_id:
                return index
        raise NotFoundError(bill_id)

    def get(self, bill_id: str) -> Bill:
        return self._bills[self._index_of(bill_id)]

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(bills=self.bills, settings=self._settings)

    def previous_readings_for(self, bill_id: str | None = None) -> Readings:
        """
        Readings that precede a bill in chronological order.

        ``None`` asks on behalf of a new bill, which would follow the last
        one. The first bill is preceded by the baseline.
        """
        if bill_id is None:
            index = len(self._bills)
        else:
            index = self._index_of(bill_id)
        if index > 0:
            return self._bills[index - 1].readings
        return self._settings.as_readings()

    def validate(self, draft: BillDraft, bill_id: str | None = None) -> None:
        """
        Checks a draft against the readings that currently precede it.

        ``bill_id`` names the bill being edited; ``None`` validates a new
        bill. Raises ``ValidationError`` listing every failed check.
        """
        previous = self.previous_readings_for(bill_id)
        ensure_valid(
            draft.date,
            draft.main.amount,
            draft.main.kwh,
            draft.readings.top,
            draft.readings.bottom,
            previous.top,
            previous.bottom,
        )

    def metrics(self) -> list[tuple[Bill, BillMetrics]]:
        """Every bill with its derived metrics, in ledger order."""
        result: list[tuple[Bill, BillMetrics]] = []
        previous = self._settings.as_readings()
        for bill in self._bills:
            result.append((bill, calculate_bill_metrics(bill, previous.top, previous.bottom)))
            previous = bill.readings
        return result

    # --- Observers ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers ``listener`` and returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: ChangeKind) -> None:
        change = LedgerChange(kind=kind, bills=self.bills, settings=self._settings)
        for listener in list(self._listeners):
            listener(change)

    # --- Persistence ---

    def _persist(self, kind: ChangeKind) -> None:
        if kind in (ChangeKind.BILLS, ChangeKind.ALL):
            self._store.save(self._bills_key, dump_bills(self._bills))
        if kind in (ChangeKind.SETTINGS, ChangeKind.ALL):
            self._store.save(self._settings_key, dump_settings(self._settings))

    def _commit(self, kind: ChangeKind) -> None:
        # The in-memory state is already changed; observers hear about it
        # even when the store refuses the write.
        try:
            self._persist(kind)
        finally:
            self._notify(kind)

    def _sort(self) -> None:
        self._bills.sort(key=_sort_key)

    # --- Mutations ---

    def set_settings(self, settings: BaselineSettings) -> None:
        """Sets or edits the baseline readings."""
        self._history.supersede()
        self._settings = settings
        self._commit(ChangeKind.SETTINGS)

    def insert(
        self, draft: BillDraft, id_factory: Callable[[], str] | None = None
    ) -> Bill:
        """Adds a bill under a freshly minted id."""
        if not self._settings.is_set:
            raise BaselineNotSetError()

        id_factory = id_factory or new_bill_id
        existing = {bill.id for bill in self._bills}
        for _ in range(MAX_ID_ATTEMPTS):
            bill_id = id_factory()
            if bill_id not in existing:
                break
        else:
            raise DuplicateIdError(MAX_ID_ATTEMPTS)

        self._history.supersede()
        bill = Bill.from_draft(bill_id, draft)
        self._bills.append(bill)
        self._sort()
        logger.info(f"Bill {bill.id} added for {bill.date}.")
        self._commit(ChangeKind.BILLS)
        return bill

    def update(
        self,
        bill_id: str,
        *,
        date: date | None = None,
        main: MainBill | None = None,
        readings: Readings | None = None,
    ) -> Bill:
        """Changes the date, main bill or readings of an existing bill."""
        index = self._index_of(bill_id)
        changes = {
            name: value
            for name, value in (("date", date), ("main", main), ("readings", readings))
            if value is not None
        }

        self._history.supersede()
        bill = dataclasses.replace(self._bills[index], **changes)
        self._bills[index] = bill
        self._sort()
        logger.info(f"Bill {bill.id} updated.")
        self._commit(ChangeKind.BILLS)
        return bill

    def delete(self, bill_id: str) -> Bill:
        """Removes a bill and offers the removal for undo."""
        index = self._index_of(bill_id)
        bill = self._bills[index]

        command = UndoCommand(kind=OperationKind.DELETE, bill=bill, index=index)
        self._history.record(command)
        command.apply(self)
        logger.info(f"Bill {bill.id} deleted.")
        self._commit(ChangeKind.BILLS)
        return bill

    def undo(self) -> Bill | None:
        """
        Reverts the pending undo offer.

        Returns the affected bill, or None when nothing is offered (the
        window passed or a newer mutation superseded it).
        """
        command = self._history.take()
        if command is None:
            return None
        command.revert(self)
        logger.info(f"Undid {command.kind.value} of bill {command.bill.id}.")
        self._commit(ChangeKind.BILLS)
        return command.bill

    def replace_all(
        self, bills: Iterable[Bill], settings: BaselineSettings | None = None
    ) -> None:
        """Overwrites everything, as restoring a backup or bulk import does."""
        bills = list(bills)
        seen: set[str] = set()
        for bill in bills:
            if bill.id in seen:
                raise DuplicateIdError(bill_id=bill.id)
            seen.add(bill.id)

        self._history.clear()
        self._bills = sorted(bills, key=_sort_key)
        self._settings = settings if settings is not None else BaselineSettings()
        logger.info(f"Ledger replaced with {len(self._bills)} bills.")
        self._commit(ChangeKind.ALL)

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self.replace_all(snapshot.bills, snapshot.settings)

    def clear(self) -> None:
        """Drops all bills and the baseline."""
        self._history.clear()
        self._bills = []
        self._settings = BaselineSettings()
        self._store.remove(self._bills_key)
        self._store.remove(self._settings_key)
        logger.info("Ledger cleared.")
        self._notify(ChangeKind.ALL)

    # --- Hooks used by undo commands ---

    def _remove_bill(self, bill_id: str) -> None:
        del self._bills[self._index_of(bill_id)]

    def _restore_bill(self, bill: Bill, index: int) -> None:
        self._bills.insert(min(index, len(self._bills)), bill)
        self._sort()
