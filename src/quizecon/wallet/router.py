"""Hint wallet API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.auth.dependencies import get_current_user_id, require_admin_key
from quizecon.database import get_session
from quizecon.wallet.ledger import WalletView, credit_wallet, get_wallet, try_debit_for_hint
from quizecon.wallet.schemas import AdminCreditRequest, HintUseResponse, WalletResponse

router = APIRouter(prefix="/api/v1", tags=["Wallet"])


def _wallet(view: WalletView) -> WalletResponse:
    return WalletResponse(
        balance=view.balance,
        free_used_today=view.free_used_today,
        free_remaining_today=view.free_remaining_today,
        daily_free_limit=view.daily_free_limit,
    )


@router.get("/wallet", response_model=WalletResponse)
async def get_my_wallet(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return _wallet(await get_wallet(db, user_id))


@router.post("/wallet/hints/use", response_model=HintUseResponse)
async def use_hint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Spend one hint. 402 when both the free allowance and the balance are exhausted."""
    debit = await try_debit_for_hint(db, user_id)
    return HintUseResponse(source=debit.source, balance=debit.balance, free_remaining=debit.free_remaining)


@router.post(
    "/admin/wallet/credit",
    response_model=WalletResponse,
    dependencies=[Depends(require_admin_key)],
)
async def admin_credit_wallet(
    body: AdminCreditRequest,
    db: AsyncSession = Depends(get_session),
):
    """Operator credit (support refunds, promotions)."""
    return _wallet(await credit_wallet(db, body.user_id, body.amount, reason=body.reason))
