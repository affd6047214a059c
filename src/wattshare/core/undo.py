"""Undo history for ledger mutations."""

from __future__ import annotations

import enum
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from wattshare.core.bills import Bill

if TYPE_CHECKING:
    from wattshare.core.ledger import Ledger


class OperationKind(str, enum.Enum):
    DELETE = "delete"


@dataclass(frozen=True)
class UndoCommand:
    """
    A recorded mutation that knows how to redo and revert itself.

    ``index`` is the position the bill held when the command was recorded,
    so reverting puts it back exactly where it was.
    """

    kind: OperationKind
    bill: Bill
    index: int

    def apply(self, ledger: Ledger) -> None:
        ledger._remove_bill(self.bill.id)

    def revert(self, ledger: Ledger) -> None:
        ledger._restore_bill(self.bill, self.index)


@dataclass(frozen=True)
class UndoOffer:
    """The command currently offered for undo and when the offer lapses."""

    command: UndoCommand
    expires_at: float


class UndoHistory:
    """
    Bounded stack of undo commands with a single time-boxed offer.

    Only the most recent command is ever offered. The offer ends when its
    window passes, when it is taken, or when any newer mutation supersedes
    it. Timers are the caller's business; expiry is checked against the
    injected clock.
    """

    def __init__(
        self,
        max_depth: int = 10,
        expiry_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._commands: deque[UndoCommand] = deque(maxlen=max_depth)
        self._offer: UndoOffer | None = None
        self._expiry_seconds = expiry_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def commands(self) -> tuple[UndoCommand, ...]:
        return tuple(self._commands)

    @property
    def pending(self) -> UndoOffer | None:
        """The live offer, or None if there is none or it has expired."""
        if self._offer is not None and self._clock() >= self._offer.expires_at:
            self._offer = None
        return self._offer

    def record(self, command: UndoCommand) -> UndoOffer:
        """Pushes a command (evicting the oldest past max depth) and offers it."""
        self._commands.append(command)
        self._offer = UndoOffer(command, self._clock() + self._expiry_seconds)
        return self._offer

    def take(self) -> UndoCommand | None:
        """Consumes the pending offer, if still live."""
        offer = self.pending
        if offer is None:
            return None
        self._offer = None
        if self._commands and self._commands[-1] is offer.command:
            self._commands.pop()
        return offer.command

    def supersede(self) -> None:
        self._offer = None

    def clear(self) -> None:
        self._commands.clear()
        self._offer = None
