"""Common command handlers."""

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from wattshare.bots.tg.handlers.utils import flush_store
from wattshare.bots.tg.keyboards.inline import get_confirm_keyboard
from wattshare.bots.tg.keyboards.reply import get_main_menu
from wattshare.bots.tg.states import BaselineSetup
from wattshare.core.ledger import Ledger
from wattshare.core.storage import TortoiseStore

router = Router(name=__name__)


@router.message(CommandStart())
async def handle_start(message: Message, state: FSMContext, ledger: Ledger) -> None:
    """Handler for the /start command."""
    await state.clear()
    await message.answer(
        "👋 <b>Welcome to WattShare!</b>\n\n"
        "Enter each main electricity bill together with the two apartment "
        "readings, and I will split it between the top and bottom apartments "
        "and the common property.",
        reply_markup=get_main_menu(),
    )
    if not ledger.settings.is_set:
        await state.set_state(BaselineSetup.enter_top)
        await message.answer(
            "First, I need the readings from when tracking began.\n\n"
            "Enter the initial <b>top</b> apartment reading:"
        )


@router.message(Command("help"))
async def handle_help(message: Message) -> None:
    """Handler for the /help command."""
    await message.answer(
        "Use the keyboard below to add bills, list them, see the summary "
        "or move data in and out as CSV.\n\n"
        "/backup - save a cloud backup\n"
        "/restore - restore a cloud backup\n"
        "/reset - delete all data\n"
        "/cancel - abort the current input",
        reply_markup=get_main_menu(),
    )


@router.message(Command("cancel"))
async def handle_cancel(message: Message, state: FSMContext) -> None:
    await state.clear()
    await message.answer("Cancelled.", reply_markup=get_main_menu())


@router.message(Command("reset"))
async def handle_reset(message: Message) -> None:
    """Asks for confirmation before deleting everything."""
    await message.answer(
        "Delete <b>all</b> bills and initial readings? This cannot be undone.",
        reply_markup=get_confirm_keyboard("reset:confirm", "reset:cancel"),
    )


@router.callback_query(F.data == "reset:confirm")
async def handle_reset_confirm(
    query: CallbackQuery, ledger: Ledger, store: TortoiseStore
) -> None:
    if not isinstance(query.message, Message):
        return
    ledger.clear()
    await flush_store(query.message, store)
    await query.message.edit_text("🗑 All data deleted. Send /start to begin again.")


@router.callback_query(F.data == "reset:cancel")
async def handle_reset_cancel(query: CallbackQuery) -> None:
    if not isinstance(query.message, Message):
        return
    await query.message.edit_text("Nothing was deleted.")
