"""Tests for bot handlers and middlewares that guard the ledger."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import Message

from conftest import make_draft
from wattshare.bots.tg.handlers.bills import handle_bill_confirmation
from wattshare.bots.tg.middlewares.access import AllowedUsersMiddleware


def _confirm_query():
    query = MagicMock()
    query.message = MagicMock(spec=Message)
    query.message.edit_text = AsyncMock()
    query.message.answer = AsyncMock()
    return query


def _entry_state(**data):
    state = AsyncMock()
    state.get_data.return_value = data
    return state


@pytest.mark.asyncio
async def test_confirmation_rechecks_against_current_ledger(ledger):
    """A bill that became invalid after its preview is not committed."""
    ledger.insert(make_draft("2024-01-01", 100, 100, 1050, 520))
    state = _entry_state(date="2024-02-01", amount="100", kwh="100", top="1060", bottom="530")
    ledger.insert(make_draft("2024-01-15", 100, 100, 1100, 540))
    query = _confirm_query()
    store = AsyncMock()

    await handle_bill_confirmation(query, state, ledger, store)

    assert len(ledger) == 2
    text = query.message.edit_text.await_args.args[0]
    assert text.startswith("⚠️")
    store.flush.assert_not_awaited()


@pytest.mark.asyncio
async def test_confirmation_saves_valid_bill(ledger):
    state = _entry_state(date="2024-02-01", amount="100", kwh="100", top="1060", bottom="530")
    query = _confirm_query()
    store = AsyncMock()

    await handle_bill_confirmation(query, state, ledger, store)

    assert len(ledger) == 1
    query.message.edit_text.assert_awaited_once_with("✅ Bill saved!")
    store.flush.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "allowed_ids, user_id, passed",
    [
        ([1, 2], 1, True),
        ([1, 2], 3, False),
        ([], 1, False),
    ],
)
async def test_allowed_users_middleware(allowed_ids, user_id, passed):
    middleware = AllowedUsersMiddleware(allowed_ids)
    handler = AsyncMock(return_value="handled")

    result = await middleware(
        handler, MagicMock(), {"event_from_user": SimpleNamespace(id=user_id)}
    )

    assert (result == "handled") is passed
    assert handler.await_count == int(passed)


@pytest.mark.asyncio
async def test_allowed_users_middleware_ignores_anonymous_updates():
    middleware = AllowedUsersMiddleware([1])
    handler = AsyncMock()

    assert await middleware(handler, MagicMock(), {}) is None
    handler.assert_not_awaited()
