"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from tortoise import Tortoise

from wattshare.core.bills import BaselineSettings, BillDraft, MainBill, Readings
from wattshare.core.ledger import Ledger
from wattshare.core.storage import MemoryStore
from wattshare.core.undo import UndoHistory


class FakeClock:
    """Manually advanced replacement for ``time.monotonic``."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_draft(day: str, amount, kwh, top, bottom) -> BillDraft:
    return BillDraft(
        date=date.fromisoformat(day),
        main=MainBill(amount=Decimal(str(amount)), kwh=Decimal(str(kwh))),
        readings=Readings(top=Decimal(str(top)), bottom=Decimal(str(bottom))),
    )


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """
    Provides a clean in-memory SQLite database for each test function.
    """
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["wattshare.core.models"]},
    )
    await Tortoise.generate_schemas()

    yield

    await Tortoise.close_connections()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def ledger(store: MemoryStore, clock: FakeClock) -> Ledger:
    """A ledger with baseline top=1000, bottom=500 and no bills."""
    ledger = Ledger(store, history=UndoHistory(max_depth=10, expiry_seconds=10, clock=clock))
    ledger.set_settings(BaselineSettings(top=Decimal("1000"), bottom=Decimal("500")))
    return ledger
