"""Pydantic models for purchase and payment endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    pack_key: str = Field(min_length=1, max_length=32)
    withdrawal_waiver_consent: bool = False


class CheckoutResponse(BaseModel):
    url: str
    payment_session_id: str


class PurchaseStatusResponse(BaseModel):
    payment_session_id: str
    pack_key: str
    quantity: int
    status: str
    created_at: datetime
    completed_at: datetime | None = None


class WebhookResponse(BaseModel):
    received: bool = True
    outcome: str


class HintPackResponse(BaseModel):
    key: str
    quantity: int
    badge: str | None = None
