"""Base repository for common CRUD operations."""

from __future__ import annotations

from typing import Any, Generic, Type, TypeVar

from tortoise.models import Model

ModelType = TypeVar("ModelType", bound=Model)


class BaseRepository(Generic[ModelType]):
    """Generic repository with basic CRUD methods."""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def all(self) -> list[ModelType]:
        """Get all model instances."""
        return await self.model.all()

    async def update_or_create(
        self, defaults: dict | None = None, **kwargs
    ) -> tuple[ModelType, bool]:
        """Update a model instance matching ``kwargs`` or create it."""
        return await self.model.update_or_create(defaults=defaults, **kwargs)

    async def delete(self, pk: Any) -> int:
        """Delete a model instance by its primary key."""
        return await self.model.filter(pk=pk).delete()
