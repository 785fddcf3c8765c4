"""Hint wallet ledger against a real database: allowance, paid balance, daily reset."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from quizecon.db.models import Wallet
from quizecon.errors import InsufficientBalance
from quizecon.wallet.ledger import (
    SOURCE_FREE,
    SOURCE_PAID,
    HintDebit,
    credit,
    credit_wallet,
    get_wallet,
    try_debit_for_hint,
)

pytestmark = pytest.mark.asyncio


async def _fund(db, user_id: str, amount: int, now) -> None:
    await credit(db, user_id, amount, now)
    await db.commit()


async def test_new_wallet_has_full_free_allowance(db_session, now):
    view = await get_wallet(db_session, "user-1", now)
    assert view.balance == 0
    assert view.free_used_today == 0
    assert view.free_remaining_today == 2
    assert view.daily_free_limit == 2


async def test_free_allowance_is_spent_before_paid_balance(db_session, now):
    await _fund(db_session, "user-1", 5, now)

    first = await try_debit_for_hint(db_session, "user-1", now)
    second = await try_debit_for_hint(db_session, "user-1", now)
    assert (first.source, first.balance, first.free_remaining) == (SOURCE_FREE, 5, 1)
    assert (second.source, second.balance, second.free_remaining) == (SOURCE_FREE, 5, 0)

    third = await try_debit_for_hint(db_session, "user-1", now)
    assert third.source == SOURCE_PAID
    assert third.balance == 4


async def test_empty_wallet_refuses_and_changes_nothing(db_session, now):
    await try_debit_for_hint(db_session, "user-1", now)
    await try_debit_for_hint(db_session, "user-1", now)

    with pytest.raises(InsufficientBalance):
        await try_debit_for_hint(db_session, "user-1", now)

    view = await get_wallet(db_session, "user-1", now)
    assert view.balance == 0
    assert view.free_used_today == 2


async def test_allowance_resets_at_local_midnight_before_debit(db_session, now):
    late = now.replace(hour=23, minute=30)
    await _fund(db_session, "user-1", 3, late)
    await try_debit_for_hint(db_session, "user-1", late)
    await try_debit_for_hint(db_session, "user-1", late)

    after_midnight = late + timedelta(minutes=31)
    debit = await try_debit_for_hint(db_session, "user-1", after_midnight)
    assert debit.source == SOURCE_FREE
    assert debit.balance == 3
    assert debit.free_remaining == 1

    row = (
        await db_session.execute(
            select(Wallet).where(Wallet.user_id == "user-1").execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert row.last_reset_date == after_midnight.date()
    assert row.free_used_today == 1


async def test_stale_allowance_reads_as_fresh_without_a_debit(db_session, now):
    await try_debit_for_hint(db_session, "user-1", now)
    await try_debit_for_hint(db_session, "user-1", now)

    view = await get_wallet(db_session, "user-1", now + timedelta(days=1))
    assert view.free_used_today == 0
    assert view.free_remaining_today == 2


async def test_credit_accumulates(db_session, now):
    await _fund(db_session, "user-1", 10, now)
    await _fund(db_session, "user-1", 50, now)
    assert (await get_wallet(db_session, "user-1", now)).balance == 60


async def test_credit_rejects_non_positive_amounts(db_session, now):
    with pytest.raises(ValueError):
        await credit(db_session, "user-1", 0, now)
    with pytest.raises(ValueError):
        await credit(db_session, "user-1", -5, now)


async def test_operator_credit_commits(db_session, session_factory, now):
    view = await credit_wallet(db_session, "user-2", 25, reason="support_refund")
    assert view.balance == 25

    async with session_factory() as other:
        row = (await other.execute(select(Wallet).where(Wallet.user_id == "user-2"))).scalar_one()
        assert row.balance == 25


async def test_wallets_are_per_user(db_session, now):
    await _fund(db_session, "user-1", 7, now)
    assert (await get_wallet(db_session, "user-2", now)).balance == 0


async def test_model_rejects_negative_balance():
    with pytest.raises(ValueError):
        Wallet(user_id="user-1", balance=-1)


async def test_concurrent_debits_at_midnight_reset_once(session_factory, now):
    async with session_factory() as db:
        await _fund(db, "user-1", 1, now)
        await try_debit_for_hint(db, "user-1", now)
        await try_debit_for_hint(db, "user-1", now)

    midnight = now.replace(hour=0, minute=0, second=1) + timedelta(days=1)

    async def debit_on_own_session():
        async with session_factory() as db:
            return await try_debit_for_hint(db, "user-1", midnight)

    results = await asyncio.gather(*(debit_on_own_session() for _ in range(4)), return_exceptions=True)
    debits = [r for r in results if isinstance(r, HintDebit)]
    refused = [r for r in results if isinstance(r, InsufficientBalance)]
    assert len(debits) == 3
    assert len(refused) == 1
    assert sorted(d.source for d in debits) == sorted([SOURCE_FREE, SOURCE_FREE, SOURCE_PAID])

    async with session_factory() as db:
        view = await get_wallet(db, "user-1", midnight)
    assert view.balance == 0
    assert view.free_used_today == 2
