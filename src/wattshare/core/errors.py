"""Exceptions raised by the ledger core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wattshare.core.validation import ValidationIssue


class LedgerError(Exception):
    """Base class for ledger errors."""


class ValidationError(LedgerError):
    """Proposed bill values were rejected. Always recoverable by re-entry."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        super().__init__("; ".join(issue.message for issue in self.issues))


class NotFoundError(LedgerError):
    """No bill with the given id exists in the ledger."""

    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Bill {bill_id} not found.")


class DuplicateIdError(LedgerError):
    """A bill id is not unique: either the id factory kept producing taken
    ids, or a bulk payload repeats one."""

    def __init__(self, attempts: int = 0, bill_id: str | None = None):
        self.attempts = attempts
        self.bill_id = bill_id
        if bill_id is not None:
            message = f"Bill id {bill_id} is used more than once."
        else:
            message = f"Could not generate a unique bill id after {attempts} attempts."
        super().__init__(message)


class BaselineNotSetError(LedgerError):
    """Bills cannot be added before both baseline readings are known."""

    def __init__(self) -> None:
        super().__init__("Baseline readings must be set before adding bills.")


class StorageQuotaError(LedgerError):
    """The key-value store has no room for the value.

    The in-memory ledger stays correct; it is just not durable until
    space is freed.
    """

    def __init__(self, key: str, required: int, quota: int):
        self.key = key
        self.required = required
        self.quota = quota
        super().__init__(
            f"Storage quota exceeded while saving '{key}': "
            f"{required} bytes needed, quota is {quota} bytes."
        )


class MalformedBackupError(LedgerError):
    """A backup payload does not have the expected shape.

    ``record`` is the 1-based bill position, or ``None`` when the problem
    is with the payload as a whole.
    """

    def __init__(self, reason: str, record: int | None = None, field: str | None = None):
        self.reason = reason
        self.record = record
        self.field = field
        if record is None:
            message = f"Malformed backup: {reason}"
        else:
            location = f" ({field})" if field else ""
            message = f"Malformed backup, bill #{record}{location}: {reason}"
        super().__init__(message)
