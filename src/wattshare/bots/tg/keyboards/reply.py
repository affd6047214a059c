"""Reply keyboard builders."""

from aiogram.types import KeyboardButton, ReplyKeyboardMarkup
from aiogram.utils.keyboard import ReplyKeyboardBuilder

ADD_BILL = "➕ Add bill"
LIST_BILLS = "📋 Bills"
SUMMARY = "📊 Summary"
BASELINE = "⚙️ Initial readings"
EXPORT_CSV = "📤 Export CSV"
IMPORT_CSV = "📥 Import CSV"


def get_main_menu() -> ReplyKeyboardMarkup:
    """Builds the main menu reply keyboard."""
    builder = ReplyKeyboardBuilder()
    builder.row(KeyboardButton(text=ADD_BILL), KeyboardButton(text=LIST_BILLS))
    builder.row(KeyboardButton(text=SUMMARY), KeyboardButton(text=BASELINE))
    builder.row(KeyboardButton(text=EXPORT_CSV), KeyboardButton(text=IMPORT_CSV))
    return builder.as_markup(resize_keyboard=True)
