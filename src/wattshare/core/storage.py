"""Key-value stores backing the ledger."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from wattshare.core.errors import StorageQuotaError
from wattshare.core.repositories.stored_value import StoredValueRepository

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class KeyValueStore(ABC):
    """
    Synchronous string storage.

    ``save`` raises ``StorageQuotaError`` when the value does not fit; the
    previously stored value under that key is left untouched in that case.
    """

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Returns the value stored under ``key``, or None."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Stores ``value`` under ``key``."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Forgets ``key``. Missing keys are ignored."""


class MemoryStore(KeyValueStore):
    """In-process store with a byte quota over all values."""

    def __init__(self, quota_bytes: int | None = DEFAULT_QUOTA_BYTES):
        self._values: dict[str, str] = {}
        self._quota = quota_bytes

    @staticmethod
    def _size(value: str) -> int:
        return len(value.encode("utf-8"))

    def used_bytes(self) -> int:
        return sum(self._size(value) for value in self._values.values())

    def _check_quota(self, key: str, value: str) -> None:
        if self._quota is None:
            return
        current = self._values.get(key)
        required = self.used_bytes() - (self._size(current) if current else 0)
        required += self._size(value)
        if required > self._quota:
            raise StorageQuotaError(key, required, self._quota)

    def load(self, key: str) -> str | None:
        return self._values.get(key)

    def save(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class TortoiseStore(MemoryStore):
    """
    Write-behind store over the ``stored_value`` table.

    Reads and writes hit the in-memory copy so the ledger never waits on
    the database; ``flush`` persists whatever changed since the last flush.
    """

    def __init__(
        self,
        repository: StoredValueRepository | None = None,
        quota_bytes: int | None = DEFAULT_QUOTA_BYTES,
    ):
        super().__init__(quota_bytes)
        self._repo = repository or StoredValueRepository()
        self._dirty: set[str] = set()
        self._removed: set[str] = set()

    @classmethod
    async def open(
        cls,
        repository: StoredValueRepository | None = None,
        quota_bytes: int | None = DEFAULT_QUOTA_BYTES,
    ) -> TortoiseStore:
        """Creates a store primed with everything already in the database."""
        store = cls(repository, quota_bytes)
        store._values.update(await store._repo.as_dict())
        logger.info(f"Loaded {len(store._values)} stored values.")
        return store

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._dirty or self._removed)

    def save(self, key: str, value: str) -> None:
        super().save(key, value)
        self._dirty.add(key)
        self._removed.discard(key)

    def remove(self, key: str) -> None:
        super().remove(key)
        self._dirty.discard(key)
        self._removed.add(key)

    async def flush(self) -> int:
        """Writes pending changes to the database. Returns the number of keys touched."""
        dirty, removed = self._dirty, self._removed
        self._dirty, self._removed = set(), set()
        try:
            for key in dirty:
                # A key removed while an earlier put was awaited is deleted
                # by the next flush instead.
                value = self._values.get(key)
                if value is not None:
                    await self._repo.put(key, value)
            for key in removed:
                await self._repo.delete(key)
        except Exception:
            self._dirty |= {key for key in dirty if key in self._values}
            self._removed |= {key for key in removed if key not in self._values}
            raise
        if dirty or removed:
            logger.debug(f"Flushed {len(dirty)} saved and {len(removed)} removed keys.")
        return len(dirty) + len(removed)
