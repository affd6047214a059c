"""Handlers for adding, editing, listing and deleting bills."""

from __future__ import annotations

import logging
from datetime import date

from aiogram import Bot, F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from wattshare.bots.tg.handlers.utils import (
    flush_store,
    fmt_kwh,
    format_bill,
    report_quota,
)
from wattshare.bots.tg.keyboards.inline import (
    BillActionCallback,
    UndoCallback,
    get_bill_actions_keyboard,
    get_confirm_keyboard,
    get_undo_keyboard,
)
from wattshare.bots.tg.keyboards.reply import ADD_BILL, LIST_BILLS
from wattshare.bots.tg.states import BaselineSetup, BillEntry
from wattshare.config import settings
from wattshare.core.bills import Bill, BillDraft, MainBill, Readings
from wattshare.core.calculations import calculate_bill_metrics
from wattshare.core.errors import (
    BaselineNotSetError,
    NotFoundError,
    StorageQuotaError,
    ValidationError,
)
from wattshare.core.ledger import Ledger
from wattshare.core.storage import TortoiseStore
from wattshare.core.validation import to_date, to_number, validate_bill
from wattshare.services.scheduler import SchedulerService

router = Router(name=__name__)
logger = logging.getLogger(__name__)

LIST_LIMIT = 6


@router.message(F.text == ADD_BILL)
@router.message(Command("add"))
async def handle_add_command(message: Message, state: FSMContext, ledger: Ledger) -> None:
    """Starts the bill entry process."""
    if not ledger.settings.is_set:
        await state.set_state(BaselineSetup.enter_top)
        await message.answer(
            "Initial readings are not set yet.\n\n"
            "Enter the initial <b>top</b> apartment reading:"
        )
        return

    await state.clear()
    await state.set_state(BillEntry.enter_date)
    await message.answer(
        "Enter the bill date as <code>YYYY-MM-DD</code>, or send <b>today</b>:"
    )


@router.callback_query(BillActionCallback.filter(F.action == "edit"))
async def handle_edit_bill(
    query: CallbackQuery,
    callback_data: BillActionCallback,
    state: FSMContext,
    ledger: Ledger,
) -> None:
    """Starts the edit flow for an existing bill."""
    if not isinstance(query.message, Message):
        return
    try:
        bill = ledger.get(callback_data.bill_id)
    except NotFoundError:
        await query.answer("This bill no longer exists.", show_alert=True)
        return

    await query.answer()
    await state.clear()
    await state.update_data(editing_bill_id=bill.id)
    await state.set_state(BillEntry.enter_date)
    await query.message.answer(
        f"Editing the bill of <b>{bill.date:%d %b %Y}</b>.\n"
        "Enter the bill date as <code>YYYY-MM-DD</code>, or send <b>today</b>:"
    )


@router.message(BillEntry.enter_date)
async def handle_bill_date(message: Message, state: FSMContext) -> None:
    text = (message.text or "").strip()
    bill_date = date.today() if text.lower() == "today" else to_date(text)
    if bill_date is None:
        await message.answer("Invalid date. Please use <code>YYYY-MM-DD</code>.")
        return

    await state.update_data(date=bill_date.isoformat())
    await state.set_state(BillEntry.enter_amount)
    await message.answer("Enter the main bill <b>amount</b>:")


async def _ask_number(
    message: Message, state: FSMContext, key: str, next_state, prompt: str
) -> None:
    value = to_number(message.text)
    if value is None:
        await message.answer("Invalid format. Please enter a number.")
        return
    await state.update_data(**{key: str(value)})
    await state.set_state(next_state)
    await message.answer(prompt)


@router.message(BillEntry.enter_amount)
async def handle_bill_amount(message: Message, state: FSMContext) -> None:
    await _ask_number(
        message, state, "amount", BillEntry.enter_kwh, "Enter the main bill <b>kWh</b>:"
    )


async def _previous_hint(state: FSMContext, ledger: Ledger, side: str) -> str:
    data = await state.get_data()
    try:
        previous = ledger.previous_readings_for(data.get("editing_bill_id"))
    except NotFoundError:
        return ""
    return f" (previous: {fmt_kwh(getattr(previous, side))})"


@router.message(BillEntry.enter_kwh)
async def handle_bill_kwh(message: Message, state: FSMContext, ledger: Ledger) -> None:
    hint = await _previous_hint(state, ledger, "top")
    await _ask_number(
        message,
        state,
        "kwh",
        BillEntry.enter_top,
        f"Enter the <b>top</b> apartment reading{hint}:",
    )


@router.message(BillEntry.enter_top)
async def handle_bill_top(message: Message, state: FSMContext, ledger: Ledger) -> None:
    hint = await _previous_hint(state, ledger, "bottom")
    await _ask_number(
        message,
        state,
        "top",
        BillEntry.enter_bottom,
        f"Enter the <b>bottom</b> apartment reading{hint}:",
    )


@router.message(BillEntry.enter_bottom)
async def handle_bill_bottom(message: Message, state: FSMContext, ledger: Ledger) -> None:
    """Validates the whole entry and asks for confirmation."""
    value = to_number(message.text)
    if value is None:
        await message.answer("Invalid format. Please enter a number.")
        return
    await state.update_data(bottom=str(value))
    data = await state.get_data()

    editing_id = data.get("editing_bill_id")
    try:
        previous = ledger.previous_readings_for(editing_id)
    except NotFoundError:
        await state.clear()
        await message.answer("This bill no longer exists.")
        return

    issues = validate_bill(
        data["date"],
        data["amount"],
        data["kwh"],
        data["top"],
        data["bottom"],
        previous.top,
        previous.bottom,
    )
    if issues:
        text_lines = ["<b>Please check the data:</b>"]
        text_lines.extend(f"• {issue.message}" for issue in issues)
        text_lines.append("\nEnter the main bill <b>amount</b> again:")
        await state.set_state(BillEntry.enter_amount)
        await message.answer("\n".join(text_lines))
        return

    # The real id is minted on save.
    preview = Bill.from_draft("preview", _draft_from(data))
    metrics = calculate_bill_metrics(preview, previous.top, previous.bottom)
    await state.set_state(BillEntry.confirm_entry)
    await message.answer(
        format_bill(preview, metrics) + "\n\nIs everything correct?",
        reply_markup=get_confirm_keyboard(),
    )


def _draft_from(data: dict) -> BillDraft:
    return BillDraft(
        date=date.fromisoformat(data["date"]),
        main=MainBill(amount=to_number(data["amount"]), kwh=to_number(data["kwh"])),
        readings=Readings(top=to_number(data["top"]), bottom=to_number(data["bottom"])),
    )


@router.callback_query(BillEntry.confirm_entry, F.data == "confirm")
async def handle_bill_confirmation(
    query: CallbackQuery, state: FSMContext, ledger: Ledger, store: TortoiseStore
) -> None:
    """Saves the bill to the ledger."""
    if not isinstance(query.message, Message):
        return

    data = await state.get_data()
    await state.clear()
    draft = _draft_from(data)
    editing_id = data.get("editing_bill_id")

    try:
        # The ledger may have changed since the preview was shown.
        ledger.validate(draft, editing_id)
        if editing_id:
            ledger.update(
                editing_id, date=draft.date, main=draft.main, readings=draft.readings
            )
            await query.message.edit_text("✅ Bill updated!")
        else:
            ledger.insert(draft)
            await query.message.edit_text("✅ Bill saved!")
    except NotFoundError:
        await query.message.edit_text("This bill no longer exists.")
        return
    except (BaselineNotSetError, ValidationError) as e:
        await query.message.edit_text(f"⚠️ {e}")
        return
    except StorageQuotaError as e:
        await report_quota(query.message, e)
        return

    await flush_store(query.message, store)


@router.callback_query(BillEntry.confirm_entry, F.data == "cancel")
async def handle_bill_cancellation(query: CallbackQuery, state: FSMContext) -> None:
    """Cancels the bill entry process."""
    await state.clear()
    if not isinstance(query.message, Message):
        return
    await query.message.edit_text("Bill entry cancelled.")


@router.message(F.text == LIST_BILLS)
@router.message(Command("bills"))
async def handle_list_bills(message: Message, ledger: Ledger) -> None:
    """Shows the most recent bills with their split, newest last."""
    rows = ledger.metrics()
    if not rows:
        await message.answer("No bills yet.")
        return

    if len(rows) > LIST_LIMIT:
        await message.answer(
            f"Showing the last {LIST_LIMIT} of {len(rows)} bills. "
            "Export to CSV to see all of them."
        )
    for bill, metrics in rows[-LIST_LIMIT:]:
        await message.answer(
            format_bill(bill, metrics), reply_markup=get_bill_actions_keyboard(bill.id)
        )


@router.callback_query(BillActionCallback.filter(F.action == "del"))
async def handle_delete_bill(
    query: CallbackQuery,
    callback_data: BillActionCallback,
    bot: Bot,
    ledger: Ledger,
    store: TortoiseStore,
    scheduler_service: SchedulerService,
) -> None:
    """Deletes a bill and offers to undo it for a short while."""
    if not isinstance(query.message, Message):
        return

    try:
        bill = ledger.delete(callback_data.bill_id)
    except NotFoundError:
        await query.answer("This bill no longer exists.", show_alert=True)
        return
    except StorageQuotaError as e:
        await query.answer()
        await report_quota(query.message, e)
        return

    await query.answer()
    await flush_store(query.message, store)
    await query.message.edit_text(
        f"🗑 Bill of <b>{bill.date:%d %b %Y}</b> deleted.",
        reply_markup=get_undo_keyboard(bill.id),
    )
    scheduler_service.schedule_undo_expiry(
        bot, query.message.chat.id, query.message.message_id, settings.UNDO_EXPIRY_SECONDS
    )


@router.callback_query(UndoCallback.filter())
async def handle_undo(
    query: CallbackQuery,
    callback_data: UndoCallback,
    ledger: Ledger,
    store: TortoiseStore,
) -> None:
    if not isinstance(query.message, Message):
        return

    offer = ledger.pending_undo
    if offer is None or offer.command.bill.id != callback_data.bill_id:
        await query.answer("Too late to undo.", show_alert=True)
        await query.message.edit_reply_markup(reply_markup=None)
        return

    try:
        bill = ledger.undo()
    except StorageQuotaError as e:
        await query.answer()
        await report_quota(query.message, e)
        return

    await query.answer()
    await flush_store(query.message, store)
    if bill is None:
        await query.message.edit_text("Too late to undo.")
        return
    await query.message.edit_text(
        f"↩️ Bill of <b>{bill.date:%d %b %Y}</b> restored.",
        reply_markup=get_bill_actions_keyboard(bill.id),
    )
