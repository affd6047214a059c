from __future__ import annotations

import logging
from decimal import Decimal

from aiogram.types import Message

from wattshare.core.bills import Bill
from wattshare.core.calculations import BillMetrics, LedgerSummary, calculate_share
from wattshare.core.errors import StorageQuotaError
from wattshare.core.storage import TortoiseStore

logger = logging.getLogger(__name__)

QUOTA_HINT = (
    "⚠️ Storage is full, the change is kept in memory only.\n"
    "Delete old bills or export them to CSV to free space."
)


def fmt_kwh(value: Decimal) -> str:
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def fmt_money(value: Decimal) -> str:
    return f"{value:,.2f}"


def format_bill(bill: Bill, metrics: BillMetrics) -> str:
    """Renders a bill with its split as an HTML message."""
    lines = [
        f"<b>{bill.date:%d %b %Y}</b>"
        + (" ⚠️" if metrics.has_anomaly else ""),
        f"Main bill: {fmt_money(bill.main.amount)} for {fmt_kwh(bill.main.kwh)} kWh "
        f"(rate {fmt_money(metrics.rate)}/kWh)",
        f"⬆️ Top: {fmt_kwh(bill.readings.top)} → {fmt_kwh(metrics.consumption_top)} kWh, "
        f"<b>{fmt_money(metrics.cost_top)}</b> "
        f"({calculate_share(metrics.cost_top, bill.main.amount)}%)",
        f"⬇️ Bottom: {fmt_kwh(bill.readings.bottom)} → "
        f"{fmt_kwh(metrics.consumption_bottom)} kWh, "
        f"<b>{fmt_money(metrics.cost_bottom)}</b> "
        f"({calculate_share(metrics.cost_bottom, bill.main.amount)}%)",
        f"🏠 Common: {fmt_kwh(metrics.common_kwh)} kWh, "
        f"<b>{fmt_money(metrics.common_cost)}</b>",
    ]
    if metrics.consumption_top < 0 or metrics.consumption_bottom < 0:
        lines.append("<i>A reading is lower than the previous one.</i>")
    if metrics.common_kwh < 0:
        lines.append("<i>Apartments used more than the main meter measured.</i>")
    return "\n".join(lines)


def format_summary(summary: LedgerSummary) -> str:
    return "\n".join(
        [
            "<b>Summary</b>",
            f"Bills: {summary.bill_count}",
            f"Apartments' consumption: {fmt_kwh(summary.total_consumption)} kWh",
            f"Apartments' cost: {fmt_money(summary.total_cost)}",
            f"Average rate: {fmt_money(summary.average_rate)}/kWh",
            f"Average per bill: {fmt_money(summary.average_bill_cost)}",
        ]
    )


async def flush_store(message: Message, store: TortoiseStore) -> bool:
    """Writes pending changes; tells the user if that was not possible."""
    try:
        await store.flush()
    except Exception as e:
        logger.error(f"Failed to persist changes: {e}", exc_info=True)
        await message.answer(
            "⚠️ Changes could not be saved right now, they will be retried."
        )
        return False
    return True


async def report_quota(message: Message, error: StorageQuotaError) -> None:
    logger.warning(str(error))
    await message.answer(QUOTA_HINT)
