"""Handlers for the initial readings setup (FSM)."""

from __future__ import annotations

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from wattshare.bots.tg.handlers.utils import flush_store, fmt_kwh, report_quota
from wattshare.bots.tg.keyboards.reply import BASELINE
from wattshare.bots.tg.states import BaselineSetup
from wattshare.core.bills import BaselineSettings
from wattshare.core.errors import StorageQuotaError
from wattshare.core.ledger import Ledger
from wattshare.core.storage import TortoiseStore
from wattshare.core.validation import to_number

router = Router(name=__name__)


@router.message(F.text == BASELINE)
async def handle_baseline_command(message: Message, state: FSMContext, ledger: Ledger) -> None:
    """Shows the current initial readings and starts editing them."""
    current = ledger.settings
    if current.is_set:
        await message.answer(
            f"Current initial readings: top <b>{fmt_kwh(current.top)}</b>, "
            f"bottom <b>{fmt_kwh(current.bottom)}</b>.\n"
            "Changing them only affects the first bill."
        )
    await state.set_state(BaselineSetup.enter_top)
    await message.answer("Enter the initial <b>top</b> apartment reading:")


@router.message(BaselineSetup.enter_top)
async def handle_baseline_top(message: Message, state: FSMContext) -> None:
    value = to_number(message.text)
    if value is None or value < 0:
        await message.answer("Invalid format. Please enter a non-negative number.")
        return

    await state.update_data(top=str(value))
    await state.set_state(BaselineSetup.enter_bottom)
    await message.answer("Now the initial <b>bottom</b> apartment reading:")


@router.message(BaselineSetup.enter_bottom)
async def handle_baseline_bottom(
    message: Message, state: FSMContext, ledger: Ledger, store: TortoiseStore
) -> None:
    value = to_number(message.text)
    if value is None or value < 0:
        await message.answer("Invalid format. Please enter a non-negative number.")
        return

    data = await state.get_data()
    await state.clear()
    top = to_number(data["top"])
    try:
        ledger.set_settings(BaselineSettings(top=top, bottom=value))
    except StorageQuotaError as e:
        await report_quota(message, e)
        return
    await flush_store(message, store)
    await message.answer(
        f"✅ Initial readings saved: top <b>{fmt_kwh(top)}</b>, "
        f"bottom <b>{fmt_kwh(value)}</b>."
    )
