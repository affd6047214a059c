"""Main entry point for the Telegram bot."""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from tortoise import Tortoise

from wattshare.bots.tg.handlers import (
    backup,
    baseline,
    bills,
    common,
    summary,
    transfer,
)
from wattshare.bots.tg.middlewares.access import AllowedUsersMiddleware
from wattshare.config import settings
from wattshare.core.db import TORTOISE_ORM
from wattshare.core.ledger import Ledger
from wattshare.core.storage import TortoiseStore
from wattshare.core.undo import UndoHistory
from wattshare.core.validation import ValueLimits
from wattshare.services.backup import BackupService
from wattshare.services.export import ExportService
from wattshare.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)


async def on_startup(dispatcher: Dispatcher, bot: Bot):
    """Actions on bot startup."""
    logger.info("Initializing database...")
    await Tortoise.init(config=TORTOISE_ORM)
    await Tortoise.generate_schemas(safe=True)
    logger.info("Database initialized.")

    store = await TortoiseStore.open(quota_bytes=settings.STORAGE_QUOTA_BYTES)
    ledger = Ledger.load(
        store,
        bills_key=settings.BILLS_STORAGE_KEY,
        settings_key=settings.SETTINGS_STORAGE_KEY,
        history=UndoHistory(
            max_depth=settings.UNDO_HISTORY_SIZE,
            expiry_seconds=settings.UNDO_EXPIRY_SECONDS,
        ),
    )
    ledger.subscribe(
        lambda change: logger.debug(
            f"Ledger changed ({change.kind.value}): {len(change.bills)} bills."
        )
    )

    scheduler_service = SchedulerService(store, AsyncIOScheduler())
    scheduler_service.start()

    dispatcher["store"] = store
    dispatcher["ledger"] = ledger
    dispatcher["scheduler_service"] = scheduler_service
    dispatcher["export_service"] = ExportService(
        min_columns=settings.CSV_MIN_COLUMNS,
        max_file_bytes=settings.CSV_MAX_FILE_BYTES,
        limits=ValueLimits(
            max_amount=settings.MAX_AMOUNT,
            max_kwh=settings.MAX_KWH,
            max_reading=settings.MAX_READING,
        ),
    )
    dispatcher["backup_service"] = BackupService(
        settings.BACKUP_API_URL, timeout_seconds=settings.BACKUP_TIMEOUT_SECONDS
    )
    logger.info("Services injected into dispatcher.")

    logger.info("Deleting webhook and dropping pending updates...")
    await bot.delete_webhook(drop_pending_updates=True)
    logger.info("Webhook deleted.")
    logger.info("Bot started.")


async def on_shutdown(dispatcher: Dispatcher, bot: Bot):
    """Actions on bot shutdown."""
    logger.info("Closing connections...")
    dispatcher["scheduler_service"].shutdown()
    await dispatcher["backup_service"].close()
    await dispatcher["store"].flush()
    await Tortoise.close_connections()
    await bot.session.close()
    logger.info("Connections closed.")


async def main():
    """Initializes and starts the bot."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logger.info("Starting bot initialization...")

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode="HTML"),
    )
    dp = Dispatcher()

    # Register startup and shutdown hooks
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    dp.message.outer_middleware(AllowedUsersMiddleware())
    dp.callback_query.outer_middleware(AllowedUsersMiddleware())

    # Register routers
    dp.include_router(common.router)
    dp.include_router(baseline.router)
    dp.include_router(bills.router)
    dp.include_router(summary.router)
    dp.include_router(transfer.router)
    dp.include_router(backup.router)

    await dp.start_polling(bot)


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Bot stopped manually.")


if __name__ == "__main__":
    run()
