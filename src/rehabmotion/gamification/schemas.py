"""Pydantic models for badges, per-user badge records and API responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BadgeCategory(str, Enum):
    MILESTONE = "milestone"
    STREAK = "streak"
    PROGRESS = "progress"
    EXERCISE = "exercise"
    SPECIAL = "special"


class BadgeTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class RequirementType(str, Enum):
    EXERCISES = "exercises"
    DAYS = "days"
    STREAK = "streak"
    PHASES = "phases"
    PAIN_FREE = "painFree"
    VIDEOS = "videos"
    CUSTOM = "custom"


# --- Badge ---


class BadgeDefinition(BaseModel):
    """Catalog entry. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    tier: BadgeTier | None = None
    requirement_type: RequirementType
    requirement: float
    points: int


class UnlockedBadge(BadgeDefinition):
    """A badge definition snapshot stamped with its unlock time."""

    unlocked_at: datetime
    progress: int = 100


class BadgeProgress(BadgeDefinition):
    """A catalog badge as seen by one user: unlocked, or locked with partial progress."""

    progress: int = 0
    unlocked: bool = False
    unlocked_at: datetime | None = None


class UserBadgeRecord(BaseModel):
    """Per-user badge state. Written only by the badge evaluator."""

    user_id: str
    unlocked_badges: list[UnlockedBadge] = []
    total_points: int = 0
    level: int = 1
    next_level_points: int = 100

    def get(self, badge_id: str) -> UnlockedBadge | None:
        for badge in self.unlocked_badges:
            if badge.id == badge_id:
                return badge
        return None

    def has(self, badge_id: str) -> bool:
        return self.get(badge_id) is not None


class BadgeNotification(BaseModel):
    badge: UnlockedBadge
    message: str
    show_confetti: bool


# --- Activity stats ---


class ActivityStats(BaseModel):
    """Sparse snapshot of a user's activity counters and session flags.

    Accepts both snake_case and the camelCase keys sent by the web client
    (``exercisesCompleted``, ``isEarlyMorning``...). Missing counters count as 0,
    missing flags as False.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    exercises_completed: int | None = None
    days_active: int | None = None
    current_streak: int | None = None
    phases_completed: int | None = None
    progress_percentage: float | None = None
    pain_free_sessions: int | None = None
    videos_watched: int | None = None
    angle_detection_used: int | None = None
    is_weekend: bool | None = None
    is_early_morning: bool | None = None
    is_late_night: bool | None = None
    had_long_break: bool | None = None


# --- API responses ---


class CatalogResponse(BaseModel):
    badges: list[BadgeDefinition]
    total: int


class UnlockedStatusResponse(BaseModel):
    badge_id: str
    unlocked: bool


class UnlockResponse(BaseModel):
    notification: BadgeNotification | None = None


class CheckBadgesResponse(BaseModel):
    notifications: list[BadgeNotification]
    record: UserBadgeRecord


class BadgeProgressResponse(BaseModel):
    badges: list[BadgeProgress]
    total_available: int
    total_unlocked: int


class BadgesByCategoryResponse(BaseModel):
    milestone: list[BadgeProgress]
    streak: list[BadgeProgress]
    progress: list[BadgeProgress]
    exercise: list[BadgeProgress]
    special: list[BadgeProgress]


class RecentBadgesResponse(BaseModel):
    badges: list[UnlockedBadge]
    days: int


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    points_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]
