"""Handlers for manual cloud backup and restore."""

from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from wattshare.bots.tg.handlers.utils import flush_store, report_quota
from wattshare.bots.tg.keyboards.inline import get_confirm_keyboard
from wattshare.bots.tg.states import BackupRestore
from wattshare.core.errors import MalformedBackupError, StorageQuotaError
from wattshare.core.ledger import Ledger
from wattshare.core.snapshot import decode_snapshot, snapshot_to_dict
from wattshare.core.storage import TortoiseStore
from wattshare.services.backup import BackupError, BackupService

router = Router(name=__name__)
logger = logging.getLogger(__name__)

BACKUP_ID_KEY = "elecCloudBackupId"
BACKUP_EDIT_KEY = "elecCloudAccessKey"


@router.message(Command("backup"))
async def handle_backup(
    message: Message,
    command: CommandObject,
    ledger: Ledger,
    store: TortoiseStore,
    backup_service: BackupService,
) -> None:
    """
    Saves the ledger to the cloud.

    ``/backup`` updates the remembered backup or creates a new one;
    ``/backup new`` always creates a new one; ``/backup <id> <edit key>``
    updates a specific backup.
    """
    args = (command.args or "").split()
    if args and args[0] == "new":
        backup_id, edit_key = None, None
    elif args:
        backup_id = args[0]
        edit_key = args[1] if len(args) > 1 else None
    else:
        backup_id, edit_key = store.load(BACKUP_ID_KEY), store.load(BACKUP_EDIT_KEY)

    await message.answer("Saving to the cloud...")
    try:
        handle = await backup_service.save(ledger.snapshot(), backup_id, edit_key)
    except BackupError as e:
        logger.warning(f"Backup save failed: {e}")
        await message.answer(f"⚠️ {e}")
        return

    try:
        store.save(BACKUP_ID_KEY, handle.backup_id)
        if handle.edit_key:
            store.save(BACKUP_EDIT_KEY, handle.edit_key)
    except StorageQuotaError as e:
        await report_quota(message, e)
    await flush_store(message, store)

    text = f"✅ Backup saved.\nId: <code>{handle.backup_id}</code>"
    if handle.edit_key and handle.backup_id != backup_id:
        text += (
            f"\nEdit key: <code>{handle.edit_key}</code>\n"
            "<i>Keep both somewhere safe, they are needed to restore or update.</i>"
        )
    await message.answer(text)


@router.message(Command("restore"))
async def handle_restore_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    ledger: Ledger,
    store: TortoiseStore,
    backup_service: BackupService,
) -> None:
    if command.args:
        await _fetch_backup(message, state, ledger, backup_service, command.args.strip())
        return
    remembered = store.load(BACKUP_ID_KEY)
    hint = f" (last used: <code>{remembered}</code>)" if remembered else ""
    await state.set_state(BackupRestore.enter_id)
    await message.answer(f"Enter the backup id or link{hint}:")


@router.message(BackupRestore.enter_id)
async def handle_restore_id(
    message: Message, state: FSMContext, ledger: Ledger, backup_service: BackupService
) -> None:
    if not message.text:
        await message.answer("A backup id is required.")
        return
    await _fetch_backup(message, state, ledger, backup_service, message.text.strip())


async def _fetch_backup(
    message: Message,
    state: FSMContext,
    ledger: Ledger,
    backup_service: BackupService,
    backup_id: str,
) -> None:
    """Downloads and validates a backup, then asks before replacing anything."""
    try:
        snapshot = await backup_service.load(backup_id)
    except (BackupError, MalformedBackupError) as e:
        await state.clear()
        await message.answer(f"⚠️ {e}")
        return

    await state.set_state(BackupRestore.confirm_restore)
    await state.update_data(snapshot=snapshot_to_dict(snapshot))
    await message.answer(
        f"Current data: <b>{len(ledger.bills)}</b> bills.\n"
        f"Backup: <b>{len(snapshot.bills)}</b> bills.\n\n"
        "Replace everything with the backup?",
        reply_markup=get_confirm_keyboard("restore:confirm", "restore:cancel"),
    )


@router.callback_query(BackupRestore.confirm_restore, F.data == "restore:confirm")
async def handle_restore_confirm(
    query: CallbackQuery, state: FSMContext, ledger: Ledger, store: TortoiseStore
) -> None:
    if not isinstance(query.message, Message):
        return
    data = await state.get_data()
    await state.clear()

    snapshot = decode_snapshot(data["snapshot"])
    try:
        ledger.restore(snapshot)
    except StorageQuotaError as e:
        await report_quota(query.message, e)
        return
    await flush_store(query.message, store)
    await query.message.edit_text(f"✅ Restored {len(snapshot.bills)} bills from the cloud.")


@router.callback_query(BackupRestore.confirm_restore, F.data == "restore:cancel")
async def handle_restore_cancel(query: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    if not isinstance(query.message, Message):
        return
    await query.message.edit_text("Restore cancelled, nothing changed.")
