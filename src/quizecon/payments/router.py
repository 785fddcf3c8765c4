"""Hint pack purchase and payment notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.auth.dependencies import get_current_user_id
from quizecon.config import get_settings
from quizecon.database import get_session
from quizecon.dependencies import get_payment_processor
from quizecon.errors import ConsentRequired
from quizecon.payments.fulfillment import get_purchase_status, initiate_purchase, reconcile_payment_event
from quizecon.payments.packs import HINT_PACKS, get_pack
from quizecon.payments.processor import PaymentProcessor
from quizecon.payments.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    HintPackResponse,
    PurchaseStatusResponse,
    WebhookResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Purchases"])


@router.get("/purchases/packs", response_model=list[HintPackResponse])
async def list_hint_packs():
    return [HintPackResponse(key=p.key, quantity=p.quantity, badge=p.badge) for p in HINT_PACKS.values()]


@router.post("/purchases/checkout", response_model=CheckoutResponse, status_code=201)
async def create_checkout(
    body: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Start a hosted checkout for a hint pack. The wallet is credited by the webhook."""
    get_pack(body.pack_key)
    if not body.withdrawal_waiver_consent:
        raise ConsentRequired("Withdrawal waiver consent is required for digital content")
    consent = {
        "withdrawal_waiver_consent": True,
        "withdrawal_waiver_version": get_settings().withdrawal_waiver_version,
    }
    redirect = await initiate_purchase(db, processor, user_id, body.pack_key, consent=consent)
    return CheckoutResponse(url=redirect.url, payment_session_id=redirect.payment_session_id)


@router.get("/purchases/{payment_session_id}", response_model=PurchaseStatusResponse)
async def get_my_purchase(
    payment_session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    purchase = await get_purchase_status(db, user_id, payment_session_id)
    if purchase is None:
        raise HTTPException(status_code=404, detail="Purchase not found")
    return PurchaseStatusResponse(
        payment_session_id=purchase.payment_session_id,
        pack_key=purchase.pack_key,
        quantity=purchase.quantity,
        status=purchase.status,
        created_at=purchase.created_at,
        completed_at=purchase.completed_at,
    )


@router.post("/payments/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_session),
):
    """Processor notification endpoint. Unauthenticated; trust comes from the signature."""
    raw = await request.body()
    outcome = await reconcile_payment_event(db, raw, stripe_signature)
    return WebhookResponse(outcome=outcome.value)
