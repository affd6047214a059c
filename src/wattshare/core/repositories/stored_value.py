"""Repository for StoredValue model."""

from __future__ import annotations

from wattshare.core.models import StoredValue
from wattshare.core.repositories.base import BaseRepository


class StoredValueRepository(BaseRepository[StoredValue]):
    """Key-value specific repository operations."""

    def __init__(self) -> None:
        super().__init__(StoredValue)

    async def as_dict(self) -> dict[str, str]:
        """Get every stored value keyed by its key."""
        return {item.key: item.value for item in await self.all()}

    async def put(self, key: str, value: str) -> None:
        """Create or overwrite the value under ``key``."""
        await self.update_or_create(defaults={"value": value}, key=key)
