"""Pydantic models for wallet endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WalletResponse(BaseModel):
    balance: int
    free_used_today: int
    free_remaining_today: int
    daily_free_limit: int


class HintUseResponse(BaseModel):
    source: str
    balance: int
    free_remaining: int


class AdminCreditRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    amount: int = Field(gt=0, le=100_000)
    reason: str = Field(default="manual", max_length=64)
