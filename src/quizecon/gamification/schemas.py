"""Pydantic request/response models for XP, streak and milestone endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from quizecon.gamification.scoring import MAX_DIFFICULTY, MAX_ELAPSED_MS, MIN_DIFFICULTY


# --- Requests ---


class AnswerRequest(BaseModel):
    difficulty: int = Field(ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    hints_used: int = Field(default=0, ge=0)
    elapsed_ms: int = Field(ge=0, le=MAX_ELAPSED_MS)
    correct: bool


# --- Shared ---


class XpBoostResponse(BaseModel):
    active: bool
    multiplier: float
    expiry: datetime | None = None


class MilestoneGrantResponse(BaseModel):
    milestone_type: str
    threshold: int
    reward_description: str
    xp_boost_multiplier: float
    boost_expiry: datetime | None = None
    free_hints_reward: int = 0
    boost_applied: bool = False


class NextMilestoneResponse(BaseModel):
    threshold: int
    remaining: int
    reward_description: str


class AchievementResponse(BaseModel):
    milestone_type: str
    threshold: int
    reward_description: str
    xp_boost_multiplier: float
    free_hints_reward: int
    achieved_at: datetime


# --- Responses ---


class AnswerResponse(BaseModel):
    correct: bool
    base_xp: int
    xp_awarded: int
    total_xp: int
    boost: XpBoostResponse
    current_streak: int
    streak_changed: bool
    daily_goal_progress: int
    daily_goal_target: int
    streak_milestone: MilestoneGrantResponse | None = None
    xp_milestones: list[MilestoneGrantResponse] = []
    next_xp_milestone: NextMilestoneResponse | None = None


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    changed: bool
    reset: bool
    milestone: MilestoneGrantResponse | None = None
    boost: XpBoostResponse


class ProgressResponse(BaseModel):
    xp: int
    current_streak: int
    longest_streak: int
    daily_goal_progress: int
    daily_goal_target: int
    boost: XpBoostResponse
    next_streak_milestone: NextMilestoneResponse | None = None
    next_xp_milestone: NextMilestoneResponse | None = None
    recent_achievements: list[AchievementResponse] = []
