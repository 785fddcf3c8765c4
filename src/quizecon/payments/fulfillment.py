"""Purchase fulfillment: the boundary between payment notifications and the wallet.

Notifications arrive at least once and in any order. ``payment_session_id`` is
the idempotency key: a purchase moves ``pending -> succeeded`` or
``pending -> failed`` exactly once, and the succeeded transition commits in the
same transaction as the wallet credit. Terminal states never change.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.config import get_settings
from quizecon.day_utils import utcnow
from quizecon.db.models import Purchase, PurchaseStatus
from quizecon.errors import SignatureVerificationFailed
from quizecon.payments.packs import get_pack
from quizecon.payments.processor import PaymentProcessor
from quizecon.payments.signature import verify_signature
from quizecon.wallet.ledger import credit

logger = structlog.get_logger()

SUCCEEDED_EVENT_TYPES = frozenset({
    "payment_succeeded",
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
})
FAILED_EVENT_TYPES = frozenset({
    "payment_failed",
    "payment_expired",
    "checkout.session.expired",
    "checkout.session.async_payment_failed",
})


class EventKind(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IGNORED = "ignored"


class ReconcileOutcome(str, enum.Enum):
    CREDITED = "credited"
    FAILED_RECORDED = "failed_recorded"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentEvent:
    event_id: str | None
    event_type: str
    kind: EventKind
    payment_session_id: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    payment_status: str | None = None


@dataclass(frozen=True)
class CheckoutRedirect:
    url: str
    payment_session_id: str


def classify_event_type(event_type: str) -> EventKind:
    if event_type in SUCCEEDED_EVENT_TYPES:
        return EventKind.SUCCEEDED
    if event_type in FAILED_EVENT_TYPES:
        return EventKind.FAILED
    return EventKind.IGNORED


def parse_event(payload: bytes | str | dict[str, Any]) -> PaymentEvent:
    """Normalise a processor notification.

    Accepts the processor's envelope (``{"type", "data": {"object": {...}}}``)
    and a flat form (``{"type", "payment_session_id", "metadata"}``).
    Raises ValueError for bodies that are not a JSON object with a type.
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError("Payment event is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError("Payment event must be a JSON object")

    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise ValueError("Payment event has no type")

    data = payload.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if isinstance(obj, dict):
        session_id = obj.get("id")
        metadata = obj.get("metadata") or {}
        payment_status = obj.get("payment_status")
    else:
        session_id = payload.get("payment_session_id")
        metadata = payload.get("metadata") or {}
        payment_status = None

    kind = classify_event_type(event_type)
    # A completed checkout for a delayed payment method is not paid yet.
    if event_type == "checkout.session.completed" and payment_status not in (None, "paid", "no_payment_required"):
        kind = EventKind.IGNORED

    return PaymentEvent(
        event_id=payload.get("id"),
        event_type=event_type,
        kind=kind,
        payment_session_id=session_id if isinstance(session_id, str) else None,
        metadata=metadata if isinstance(metadata, dict) else {},
        payment_status=payment_status,
    )


async def initiate_purchase(
    db: AsyncSession,
    processor: PaymentProcessor,
    user_id: str,
    pack_key: str,
    consent: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> CheckoutRedirect:
    """Open a checkout for a hint pack and record a pending purchase. The wallet is untouched."""
    pack = get_pack(pack_key)
    if now is None:
        now = utcnow()

    metadata = {str(k): str(v) for k, v in (consent or {}).items()}
    checkout = await processor.create_checkout_session(user_id, pack, metadata)

    db.add(
        Purchase(
            user_id=user_id,
            payment_session_id=checkout.id,
            pack_key=pack.key,
            quantity=pack.quantity,
            status=PurchaseStatus.PENDING.value,
            consent=consent,
            created_at=now,
        )
    )
    await db.commit()

    logger.info("purchase_initiated", user_id=user_id, pack_key=pack.key, payment_session_id=checkout.id)
    if consent:
        logger.info("purchase_consent_recorded", user_id=user_id, payment_session_id=checkout.id, consent=consent)
    return CheckoutRedirect(url=checkout.url, payment_session_id=checkout.id)


def _log_metadata_mismatch(purchase: Purchase, event: PaymentEvent) -> None:
    """The stored purchase is authoritative; disagreeing metadata is only reported."""
    meta = event.metadata
    mismatches = {}
    if meta.get("user_id") not in (None, purchase.user_id):
        mismatches["user_id"] = meta.get("user_id")
    if meta.get("pack_key") not in (None, purchase.pack_key):
        mismatches["pack_key"] = meta.get("pack_key")
    if meta.get("quantity") not in (None, str(purchase.quantity), purchase.quantity):
        mismatches["quantity"] = meta.get("quantity")
    if mismatches:
        logger.warning(
            "payment_event_metadata_mismatch",
            payment_session_id=purchase.payment_session_id,
            purchase_id=purchase.id,
            **{f"event_{k}": v for k, v in mismatches.items()},
        )


async def _transition(db: AsyncSession, purchase_id: str, status: PurchaseStatus, now: datetime) -> bool:
    """``pending -> status`` as a conditional update. False if the purchase was no longer pending."""
    result = await db.execute(
        update(Purchase)
        .where(Purchase.id == purchase_id, Purchase.status == PurchaseStatus.PENDING.value)
        .values(status=status.value, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reconcile_payment_event(
    db: AsyncSession,
    raw_event: bytes,
    signature: str | None,
    now: datetime | None = None,
) -> ReconcileOutcome:
    """Apply one payment notification. Safe to call any number of times per event."""
    settings = get_settings()
    if now is None:
        now = utcnow()

    try:
        verify_signature(
            raw_event,
            signature,
            settings.payment_webhook_secret,
            settings.payment_signature_tolerance_seconds,
            now,
        )
    except SignatureVerificationFailed as exc:
        logger.warning("payment_signature_rejected", reason=exc.detail)
        raise

    try:
        event = parse_event(raw_event)
    except ValueError as exc:
        logger.warning("payment_event_malformed", error=str(exc))
        return ReconcileOutcome.IGNORED

    log = logger.bind(event_id=event.event_id, event_type=event.event_type, payment_session_id=event.payment_session_id)
    if event.kind is EventKind.IGNORED or event.payment_session_id is None:
        log.info("payment_event_ignored")
        return ReconcileOutcome.IGNORED

    result = await db.execute(
        select(Purchase)
        .where(Purchase.payment_session_id == event.payment_session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    purchase = result.scalar_one_or_none()
    if purchase is None:
        log.warning("payment_event_unknown_session")
        return ReconcileOutcome.IGNORED

    _log_metadata_mismatch(purchase, event)

    current = purchase.status
    if current != PurchaseStatus.PENDING.value:
        await db.rollback()
        same = current == event.kind.value
        log.info("payment_event_duplicate" if same else "payment_event_after_terminal", status=current)
        return ReconcileOutcome.DUPLICATE if same else ReconcileOutcome.IGNORED

    if event.kind is EventKind.FAILED:
        if not await _transition(db, purchase.id, PurchaseStatus.FAILED, now):
            await db.rollback()
            log.info("payment_event_duplicate")
            return ReconcileOutcome.DUPLICATE
        await db.commit()
        log.info("purchase_failed", user_id=purchase.user_id)
        return ReconcileOutcome.FAILED_RECORDED

    if not await _transition(db, purchase.id, PurchaseStatus.SUCCEEDED, now):
        await db.rollback()
        log.info("payment_event_duplicate")
        return ReconcileOutcome.DUPLICATE
    user_id, quantity = purchase.user_id, purchase.quantity
    try:
        balance = await credit(db, user_id, quantity, now)
        await db.commit()
    except Exception:
        # the purchase stays pending so a redelivery can credit it
        await db.rollback()
        log.exception("purchase_credit_failed", user_id=user_id)
        raise

    log.info("purchase_credited", user_id=user_id, quantity=quantity, balance=balance)
    return ReconcileOutcome.CREDITED


async def get_purchase_status(db: AsyncSession, user_id: str, payment_session_id: str) -> Purchase | None:
    """The user's purchase for a checkout session, or None (also for other users' sessions)."""
    result = await db.execute(
        select(Purchase)
        .where(Purchase.payment_session_id == payment_session_id, Purchase.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
