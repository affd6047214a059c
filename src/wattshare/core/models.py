"""Database models for the WattShare application."""

from __future__ import annotations

from tortoise import fields, models


class StoredValue(models.Model):
    """A string value kept under a key, the persistent side of the local store."""

    key = fields.CharField(pk=True, max_length=64)
    value = fields.TextField()
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "stored_value"

    def __str__(self) -> str:
        return f"{self.key} ({len(self.value)} chars)"
