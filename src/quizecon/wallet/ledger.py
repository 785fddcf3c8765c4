"""Hint wallet ledger: the only code that changes a wallet balance.

Every balance change is a single conditional or incrementing UPDATE against the
stored row. Nothing here reads a balance into memory and writes it back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.config import get_settings
from quizecon.database import insert_for
from quizecon.day_utils import local_today, utcnow
from quizecon.db.models import Wallet
from quizecon.errors import InsufficientBalance, WalletNotFound

logger = structlog.get_logger()

SOURCE_FREE = "free"
SOURCE_PAID = "paid"


@dataclass(frozen=True)
class WalletView:
    user_id: str
    balance: int
    free_used_today: int
    free_remaining_today: int
    daily_free_limit: int


@dataclass(frozen=True)
class HintDebit:
    """Outcome of a successful hint debit."""

    source: str
    balance: int
    free_remaining: int


async def ensure_wallet(db: AsyncSession, user_id: str, now: datetime | None = None) -> None:
    """Provision the user's wallet if it does not exist yet. Safe under concurrency."""
    if now is None:
        now = utcnow()
    stmt = (
        insert_for(db, Wallet)
        .values(
            user_id=user_id,
            balance=get_settings().starting_hint_balance,
            free_used_today=0,
            last_reset_date=local_today(now),
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    await db.execute(stmt)


async def _load(db: AsyncSession, user_id: str) -> Wallet:
    result = await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if wallet is None:
        raise WalletNotFound(f"No wallet for user {user_id}")
    return wallet


def _free_used_as_of(wallet: Wallet, today: date) -> int:
    """Free uses counted against ``today``; a stale reset date means none yet."""
    if wallet.last_reset_date is None or wallet.last_reset_date < today:
        return 0
    return wallet.free_used_today


def _view(wallet: Wallet, today: date) -> WalletView:
    limit = get_settings().daily_free_hints
    used = _free_used_as_of(wallet, today)
    return WalletView(
        user_id=wallet.user_id,
        balance=wallet.balance,
        free_used_today=used,
        free_remaining_today=max(0, limit - used),
        daily_free_limit=limit,
    )


async def get_wallet(db: AsyncSession, user_id: str, now: datetime | None = None) -> WalletView:
    """Current balance and today's free allowance, provisioning the wallet on first access."""
    if now is None:
        now = utcnow()
    await ensure_wallet(db, user_id, now)
    await db.commit()
    return _view(await _load(db, user_id), local_today(now))


async def credit(db: AsyncSession, user_id: str, amount: int, now: datetime | None = None) -> int:
    """Atomically add ``amount`` hints. Does not commit; returns the new balance.

    Callers compose this into their own transaction (purchase fulfillment,
    milestone rewards) so the credit commits or rolls back with them.
    """
    if amount <= 0:
        raise ValueError(f"credit amount must be > 0, got {amount}")
    if now is None:
        now = utcnow()
    await ensure_wallet(db, user_id, now)
    await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(balance=Wallet.balance + amount, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    wallet = await _load(db, user_id)
    return wallet.balance


async def credit_wallet(db: AsyncSession, user_id: str, amount: int, reason: str = "manual") -> WalletView:
    """Credit and commit. The operator-facing entry point."""
    now = utcnow()
    balance = await credit(db, user_id, amount, now)
    await db.commit()
    logger.info("wallet_credited", user_id=user_id, amount=amount, balance=balance, reason=reason)
    return _view(await _load(db, user_id), local_today(now))


async def try_debit_for_hint(db: AsyncSession, user_id: str, now: datetime | None = None) -> HintDebit:
    """Consume one hint: today's free allowance first, then the paid balance.

    The daily reset and the debit commit together. The reset only fires while
    the stored reset date is before today, so two racing requests at midnight
    reset once and both debits are counted.
    """
    if now is None:
        now = utcnow()
    today = local_today(now)
    limit = get_settings().daily_free_hints

    await ensure_wallet(db, user_id, now)

    await db.execute(
        update(Wallet)
        .where(
            Wallet.user_id == user_id,
            or_(Wallet.last_reset_date.is_(None), Wallet.last_reset_date < today),
        )
        .values(free_used_today=0, last_reset_date=today, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    free = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.free_used_today < limit)
        .values(free_used_today=Wallet.free_used_today + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if free.rowcount == 1:
        source = SOURCE_FREE
    else:
        paid = await db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance > 0)
            .values(balance=Wallet.balance - 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if paid.rowcount != 1:
            await db.rollback()
            logger.info("hint_debit_refused", user_id=user_id)
            raise InsufficientBalance("No free hints left today and no paid hints in the wallet")
        source = SOURCE_PAID

    await db.commit()
    wallet = await _load(db, user_id)
    view = _view(wallet, today)
    logger.info("hint_debited", user_id=user_id, source=source, balance=view.balance)
    return HintDebit(source=source, balance=view.balance, free_remaining=view.free_remaining_today)
