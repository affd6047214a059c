"""Value types for bills and baseline readings."""

from __future__ import annotations

import itertools
import secrets
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

ZERO = Decimal("0")

_id_counter = itertools.count(1)


def new_bill_id() -> str:
    """Returns a fresh bill id: timestamp, process counter and random suffix."""
    return f"{int(time.time() * 1000)}-{next(_id_counter)}-{secrets.token_hex(5)}"


@dataclass(frozen=True)
class MainBill:
    """The aggregate bill for the whole meter over a period."""

    amount: Decimal
    kwh: Decimal


@dataclass(frozen=True)
class Readings:
    """Cumulative sub-meter readings taken at the end of a period."""

    top: Decimal
    bottom: Decimal


@dataclass(frozen=True)
class BillDraft:
    """A bill that has not been assigned an id yet."""

    date: date
    main: MainBill
    readings: Readings


@dataclass(frozen=True)
class Bill:
    """One billing period's record."""

    id: str
    date: date
    main: MainBill
    readings: Readings

    @classmethod
    def from_draft(cls, bill_id: str, draft: BillDraft) -> Bill:
        return cls(id=bill_id, date=draft.date, main=draft.main, readings=draft.readings)


@dataclass(frozen=True)
class BaselineSettings:
    """Sub-meter readings at the moment tracking began."""

    top: Decimal | None = None
    bottom: Decimal | None = None

    @property
    def is_set(self) -> bool:
        return self.top is not None and self.bottom is not None

    def as_readings(self) -> Readings:
        """Baseline as readings; an unset side counts as zero."""
        return Readings(
            top=self.top if self.top is not None else ZERO,
            bottom=self.bottom if self.bottom is not None else ZERO,
        )
