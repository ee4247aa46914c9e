"""Badge API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from rehabmotion.config import get_settings
from rehabmotion.dependencies import get_badge_evaluator
from rehabmotion.gamification.badge_service import BadgeEvaluator
from rehabmotion.gamification.level_thresholds import level_thresholds
from rehabmotion.gamification.schemas import (
    ActivityStats,
    AllLevelsResponse,
    BadgeProgressResponse,
    BadgesByCategoryResponse,
    CatalogResponse,
    CheckBadgesResponse,
    LevelEntry,
    RecentBadgesResponse,
    UnlockedStatusResponse,
    UnlockResponse,
    UserBadgeRecord,
)

router = APIRouter(prefix="/api/v1", tags=["Badges"])


# ── Catalog ──


@router.get("/badges", response_model=CatalogResponse)
async def list_badges(evaluator: BadgeEvaluator = Depends(get_badge_evaluator)):  # noqa: B008
    """All badge definitions in catalog order."""
    badges = list(evaluator.catalog)
    return CatalogResponse(badges=badges, total=len(badges))


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels(count: int = Query(10, ge=1, le=100)):
    """The level staircase: cost and cumulative points for each level."""
    return AllLevelsResponse(levels=[LevelEntry(**entry) for entry in level_thresholds(count)])


# ── Per-user ──


@router.get("/users/{user_id}/badges", response_model=UserBadgeRecord)
async def get_user_badges(
    user_id: str,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """The user's unlocked badges, points and level."""
    return await evaluator.get_user_badges(user_id)


@router.get("/users/{user_id}/badges/recent", response_model=RecentBadgesResponse)
async def get_recent_badges(
    user_id: str,
    days: int | None = Query(None, ge=1, le=365),
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Badges unlocked in the last ``days`` days, newest first."""
    window = days if days is not None else get_settings().recent_badge_days
    badges = await evaluator.recently_unlocked(user_id, days=window)
    return RecentBadgesResponse(badges=badges, days=window)


@router.get("/users/{user_id}/badges/{badge_id}/unlocked", response_model=UnlockedStatusResponse)
async def get_badge_unlocked(
    user_id: str,
    badge_id: str,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Whether a single badge is unlocked for the user."""
    return UnlockedStatusResponse(badge_id=badge_id, unlocked=await evaluator.is_unlocked(user_id, badge_id))


@router.post("/users/{user_id}/badges/{badge_id}/unlock", response_model=UnlockResponse)
async def unlock_badge(
    user_id: str,
    badge_id: str,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Unlock a badge directly. ``notification`` is null if nothing changed."""
    return UnlockResponse(notification=await evaluator.unlock_badge(user_id, badge_id))


@router.post("/users/{user_id}/badges/check", response_model=CheckBadgesResponse)
async def check_badges(
    user_id: str,
    stats: ActivityStats,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Evaluate activity stats and unlock everything they qualify for."""
    notifications = await evaluator.check_and_unlock(user_id, stats)
    record = await evaluator.get_user_badges(user_id)
    return CheckBadgesResponse(notifications=notifications, record=record)


@router.post("/users/{user_id}/badges/progress", response_model=BadgeProgressResponse)
async def badge_progress(
    user_id: str,
    stats: ActivityStats,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Every catalog badge with the user's progress towards it."""
    badges = await evaluator.progress_for(user_id, stats)
    return BadgeProgressResponse(
        badges=badges,
        total_available=len(badges),
        total_unlocked=sum(1 for b in badges if b.unlocked),
    )


@router.post("/users/{user_id}/badges/by-category", response_model=BadgesByCategoryResponse)
async def badges_by_category(
    user_id: str,
    stats: ActivityStats,
    evaluator: BadgeEvaluator = Depends(get_badge_evaluator),  # noqa: B008
):
    """Badge progress grouped by category."""
    grouped = await evaluator.badges_by_category(user_id, stats)
    return BadgesByCategoryResponse(**{category.value: badges for category, badges in grouped.items()})
