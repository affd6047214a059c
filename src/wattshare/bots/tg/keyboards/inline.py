"""Inline keyboard builders."""

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder


class BillActionCallback(CallbackData, prefix="bill"):
    """
    Callback data for actions on a single bill.
    - edit: start the edit flow
    - del: delete the bill
    """

    action: str
    bill_id: str


class UndoCallback(CallbackData, prefix="undo"):
    """Callback data for the Undo button shown after a deletion."""

    bill_id: str


def get_confirm_keyboard(confirm_data: str = "confirm", cancel_data: str = "cancel") -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(text="✅ Confirm", callback_data=confirm_data))
    builder.add(InlineKeyboardButton(text="❌ Cancel", callback_data=cancel_data))
    return builder.as_markup()


def get_bill_actions_keyboard(bill_id: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.add(
        InlineKeyboardButton(
            text="✏️ Edit",
            callback_data=BillActionCallback(action="edit", bill_id=bill_id).pack(),
        )
    )
    builder.add(
        InlineKeyboardButton(
            text="🗑 Delete",
            callback_data=BillActionCallback(action="del", bill_id=bill_id).pack(),
        )
    )
    return builder.as_markup()


def get_undo_keyboard(bill_id: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.add(
        InlineKeyboardButton(
            text="↩️ Undo", callback_data=UndoCallback(bill_id=bill_id).pack()
        )
    )
    return builder.as_markup()
