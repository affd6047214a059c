"""Service for scheduling background jobs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from wattshare.core.storage import TortoiseStore

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages scheduled tasks for the application."""

    def __init__(
        self,
        store: TortoiseStore,
        scheduler: AsyncIOScheduler,
        flush_interval_seconds: int = 60,
    ):
        self._store = store
        self._scheduler = scheduler
        self._flush_interval = flush_interval_seconds

    def start(self):
        """Starts the scheduler and adds jobs."""
        logger.info("Starting scheduler...")
        self._scheduler.add_job(
            self._run_store_flush,
            trigger=IntervalTrigger(seconds=self._flush_interval),
            id="store_flush",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started.")

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def schedule_undo_expiry(
        self, bot: Bot, chat_id: int, message_id: int, delay_seconds: float
    ) -> None:
        """Removes the Undo button from a message once its window has passed."""
        self._scheduler.add_job(
            self._expire_undo_offer,
            trigger=DateTrigger(run_date=datetime.now() + timedelta(seconds=delay_seconds)),
            args=(bot, chat_id, message_id),
            id=f"undo_expiry:{chat_id}:{message_id}",
            replace_existing=True,
        )

    async def _expire_undo_offer(self, bot: Bot, chat_id: int, message_id: int):
        try:
            await bot.edit_message_reply_markup(
                chat_id=chat_id, message_id=message_id, reply_markup=None
            )
        except TelegramBadRequest as e:
            # The message was already edited (undo pressed) or deleted.
            logger.debug(f"Undo offer {chat_id}:{message_id} already gone: {e}")

    async def _run_store_flush(self):
        """Persists store changes that a handler failed to flush."""
        if not self._store.has_pending_changes:
            return
        try:
            flushed = await self._store.flush()
            logger.info(f"Background flush wrote {flushed} keys.")
        except Exception as e:
            logger.error(f"Background flush failed: {e}", exc_info=True)
