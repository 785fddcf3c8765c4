"""Pydantic models for ranked mode endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from quizecon.gamification.scoring import MAX_DIFFICULTY, MAX_ELAPSED_MS, MIN_DIFFICULTY


class RankedAttemptRequest(BaseModel):
    difficulty: int = Field(ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    elapsed_ms: int = Field(ge=0, le=MAX_ELAPSED_MS)
    hints_used: int = Field(default=0, ge=0)
    correct: bool


class RankedSessionResponse(BaseModel):
    id: str
    is_active: bool
    started_at: datetime
    ended_at: datetime | None = None
    starting_score: int
    total_score: int
    questions_answered: int
    correct_answers: int
    total_time_ms: int


class ActiveSessionResponse(BaseModel):
    session: RankedSessionResponse | None = None


class RankedAttemptResponse(BaseModel):
    score_delta: int
    session: RankedSessionResponse


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    total_score: int
    questions_answered: int
    correct_answers: int
    accuracy: float
    average_time_ms: int
    achieved_at: datetime


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    my_rank: int | None = None


class SessionEndResponse(BaseModel):
    session: RankedSessionResponse
    score_delta: int
    accuracy: float
    average_time_ms: int
    lifetime_score: int
    on_leaderboard: bool
    rank: int | None = None


class RankedStatsResponse(BaseModel):
    total_score: int
    sessions_played: int
    questions_answered: int
    correct_answers: int
    accuracy: float
    average_time_ms: int
    average_score_per_session: int
    rank: int | None = None
