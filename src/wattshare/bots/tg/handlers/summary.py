from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from wattshare.bots.tg.handlers.utils import format_summary
from wattshare.bots.tg.keyboards.reply import SUMMARY
from wattshare.core.calculations import summarize
from wattshare.core.ledger import Ledger

router = Router(name=__name__)


@router.message(F.text == SUMMARY)
@router.message(Command("summary"))
async def handle_summary_command(message: Message, ledger: Ledger) -> None:
    """Shows totals and averages over every bill."""
    if not ledger.bills:
        await message.answer("No bills yet.")
        return

    anomalies = sum(1 for _, metrics in ledger.metrics() if metrics.has_anomaly)
    text = format_summary(summarize(ledger.bills, ledger.settings))
    if anomalies:
        text += f"\n\n⚠️ {anomalies} bill(s) look inconsistent, see the bill list."
    await message.answer(text)
