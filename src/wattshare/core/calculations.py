"""Core business logic for consumption and cost calculations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from wattshare.core.bills import BaselineSettings, Bill, MainBill

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _round_money(value: Decimal) -> Decimal:
    # ROUND_HALF_UP on Decimal rounds half away from zero.
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_rate(main: MainBill) -> Decimal:
    """
    Calculates the price per kWh of a main bill.

    A bill with zero aggregate consumption (e.g. a vacant period) has a
    rate of zero rather than raising.
    """
    if main.kwh > 0:
        return main.amount / main.kwh
    return ZERO


def calculate_consumption(current_reading: Decimal, previous_reading: Decimal) -> Decimal:
    """
    Calculates the consumption between two meter readings.

    The result is not clamped: a negative value means the readings went
    backwards and must stay visible as an anomaly.
    """
    return current_reading - previous_reading


def calculate_clamped_consumption(
    current_reading: Decimal, previous_reading: Decimal
) -> Decimal:
    """Consumption for aggregation; negative deltas count as zero."""
    consumption = calculate_consumption(current_reading, previous_reading)
    if consumption < ZERO:
        return ZERO
    return consumption


def calculate_cost(consumption: Decimal, rate: Decimal) -> Decimal:
    """
    Calculates the monetary cost based on consumption and a rate.

    Args:
        consumption: The amount of energy consumed, possibly negative.
        rate: The monetary rate per kWh.

    Returns:
        The cost rounded to the currency's minor unit.
    """
    return _round_money(consumption * rate)


def calculate_common(
    main: MainBill, consumption_top: Decimal, consumption_bottom: Decimal
) -> tuple[Decimal, Decimal]:
    """
    Returns the common property consumption and its cost.

    A negative common consumption means the apartments together reported
    more than the main meter measured.
    """
    common_kwh = main.kwh - (consumption_top + consumption_bottom)
    return common_kwh, calculate_cost(common_kwh, calculate_rate(main))


def calculate_share(amount: Decimal, total: Decimal) -> int:
    """Whole-number percentage of ``amount`` in ``total``; 0 if total is not positive."""
    if total <= 0:
        return 0
    return int((amount / total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class BillMetrics:
    """Derived figures for a single bill. Never stored."""

    rate: Decimal
    consumption_top: Decimal
    consumption_bottom: Decimal
    cost_top: Decimal
    cost_bottom: Decimal
    common_kwh: Decimal
    common_cost: Decimal
    total_consumption: Decimal  # Apartments only, common excluded
    total_cost: Decimal
    has_anomaly: bool


def calculate_bill_metrics(
    bill: Bill, prev_top: Decimal, prev_bottom: Decimal
) -> BillMetrics:
    """Calculates all metrics for a bill given the readings that precede it."""
    rate = calculate_rate(bill.main)
    consumption_top = calculate_consumption(bill.readings.top, prev_top)
    consumption_bottom = calculate_consumption(bill.readings.bottom, prev_bottom)
    cost_top = calculate_cost(consumption_top, rate)
    cost_bottom = calculate_cost(consumption_bottom, rate)
    common_kwh, common_cost = calculate_common(
        bill.main, consumption_top, consumption_bottom
    )

    return BillMetrics(
        rate=rate,
        consumption_top=consumption_top,
        consumption_bottom=consumption_bottom,
        cost_top=cost_top,
        cost_bottom=cost_bottom,
        common_kwh=common_kwh,
        common_cost=common_cost,
        total_consumption=consumption_top + consumption_bottom,
        total_cost=cost_top + cost_bottom,
        has_anomaly=(
            consumption_top < ZERO or consumption_bottom < ZERO or common_kwh < ZERO
        ),
    )


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregate figures over the whole ledger."""

    bill_count: int
    total_consumption: Decimal
    total_cost: Decimal
    average_rate: Decimal
    average_bill_cost: Decimal


def summarize(bills: Iterable[Bill], baseline: BaselineSettings) -> LedgerSummary:
    """
    Walks the bills in chronological order and accumulates the totals.

    Each bill's previous readings are the readings of the bill before it,
    the first bill's are the baseline. Negative deltas are clamped so a
    single bad entry cannot drag the running totals below zero.
    """
    previous = baseline.as_readings()
    prev_top, prev_bottom = previous.top, previous.bottom

    bill_count = 0
    total_consumption = ZERO
    total_cost = ZERO
    for bill in bills:
        rate = calculate_rate(bill.main)
        consumption_top = calculate_clamped_consumption(bill.readings.top, prev_top)
        consumption_bottom = calculate_clamped_consumption(
            bill.readings.bottom, prev_bottom
        )
        total_consumption += consumption_top + consumption_bottom
        total_cost += calculate_cost(consumption_top, rate) + calculate_cost(
            consumption_bottom, rate
        )
        bill_count += 1
        prev_top, prev_bottom = bill.readings.top, bill.readings.bottom

    average_rate = ZERO
    if total_consumption > 0:
        average_rate = _round_money(total_cost / total_consumption)
    average_bill_cost = ZERO
    if bill_count:
        average_bill_cost = _round_money(total_cost / bill_count)

    return LedgerSummary(
        bill_count=bill_count,
        total_consumption=total_consumption,
        total_cost=_round_money(total_cost),
        average_rate=average_rate,
        average_bill_cost=average_bill_cost,
    )
