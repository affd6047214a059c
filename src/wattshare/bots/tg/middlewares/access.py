"""Middleware for access control."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from wattshare.config import settings

logger = logging.getLogger(__name__)


class AllowedUsersMiddleware(BaseMiddleware):
    """
    Drops updates from users who are not on the allow-list.

    The ledger is personal; with an empty allow-list nobody gets in.
    """

    def __init__(self, allowed_ids: list[int] | None = None):
        self._allowed_ids = allowed_ids if allowed_ids is not None else settings.ALLOWED_USER_IDS
        if not self._allowed_ids:
            logger.warning("ALLOWED_USER_IDS is empty; all updates will be ignored.")

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return None

        if user.id in self._allowed_ids:
            return await handler(event, data)

        logger.debug(f"Ignoring update from user {user.id}.")
        return None
