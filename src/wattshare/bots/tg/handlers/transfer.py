"""Handlers for CSV export and import."""

from __future__ import annotations

import io
import logging

from aiogram import Bot, F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import BufferedInputFile, Message

from wattshare.bots.tg.handlers.utils import flush_store, report_quota
from wattshare.bots.tg.keyboards.reply import EXPORT_CSV, IMPORT_CSV
from wattshare.bots.tg.states import CsvImport
from wattshare.config import settings
from wattshare.core.errors import StorageQuotaError
from wattshare.core.ledger import Ledger
from wattshare.core.storage import TortoiseStore
from wattshare.services.export import ExportService, ImportFileError

router = Router(name=__name__)
logger = logging.getLogger(__name__)

CSV_FILENAME = "electricity_data.csv"
MAX_REPORTED_PROBLEMS = 5


@router.message(F.text == EXPORT_CSV)
async def handle_export(message: Message, ledger: Ledger, export_service: ExportService) -> None:
    if not ledger.bills:
        await message.answer("There is nothing to export yet.")
        return

    document = BufferedInputFile(export_service.export_csv_bytes(ledger), filename=CSV_FILENAME)
    await message.answer_document(document, caption=f"{len(ledger.bills)} bills")


@router.message(F.text == IMPORT_CSV)
async def handle_import_command(message: Message, state: FSMContext) -> None:
    await state.set_state(CsvImport.wait_file)
    await message.answer(
        "Send a CSV file exported from WattShare or a spreadsheet with the "
        "same columns. Rows whose date already exists are skipped."
    )


@router.message(CsvImport.wait_file, F.document)
async def handle_import_file(
    message: Message,
    state: FSMContext,
    bot: Bot,
    ledger: Ledger,
    store: TortoiseStore,
    export_service: ExportService,
) -> None:
    if not message.document:
        return
    if message.document.file_size and message.document.file_size > settings.CSV_MAX_FILE_BYTES:
        await message.answer("The file is too large (max 5 MB).")
        return

    await state.clear()
    buffer = io.BytesIO()
    await bot.download(message.document, destination=buffer)

    try:
        report = export_service.import_csv(buffer.getvalue(), ledger)
    except ImportFileError as e:
        logger.info(f"CSV import rejected: {e}")
        await message.answer(f"⚠️ {e}")
        return
    except StorageQuotaError as e:
        await report_quota(message, e)
        return

    await flush_store(message, store)
    text_lines = [
        f"Import finished: {report.imported} bills imported, "
        f"{report.skipped} rows skipped."
    ]
    if report.problems:
        text_lines.append("\n<b>Problems:</b>")
        text_lines.extend(
            f"Row {problem.row}: {problem.reason}"
            for problem in report.problems[:MAX_REPORTED_PROBLEMS]
        )
    await message.answer("\n".join(text_lines))


@router.message(CsvImport.wait_file)
async def handle_import_not_a_file(message: Message) -> None:
    await message.answer("Please send the CSV as a file, or /cancel.")
