"""FSM states for the bot."""

from aiogram.fsm.state import State, StatesGroup


class BaselineSetup(StatesGroup):
    """States for entering the initial sub-meter readings."""

    enter_top = State()
    enter_bottom = State()


class BillEntry(StatesGroup):
    """States for adding or editing a bill."""

    enter_date = State()
    enter_amount = State()
    enter_kwh = State()
    enter_top = State()
    enter_bottom = State()
    confirm_entry = State()


class CsvImport(StatesGroup):
    wait_file = State()


class BackupRestore(StatesGroup):
    """States for restoring a cloud backup."""

    enter_id = State()
    confirm_restore = State()
