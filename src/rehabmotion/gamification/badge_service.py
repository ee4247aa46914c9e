"""Badge evaluator: unlocks achievements, tracks points/levels and emits notifications."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis

from rehabmotion.gamification.catalog import BadgeCatalog, get_catalog
from rehabmotion.gamification.level_thresholds import compute_level
from rehabmotion.gamification.schemas import (
    ActivityStats,
    BadgeCategory,
    BadgeDefinition,
    BadgeNotification,
    BadgeProgress,
    BadgeTier,
    UnlockedBadge,
    UserBadgeRecord,
)
from rehabmotion.gamification.store import BadgeStore, PersistenceUnavailable

logger = logging.getLogger(__name__)

CONFETTI_TIERS = frozenset({BadgeTier.GOLD, BadgeTier.PLATINUM})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_record(user_id: str) -> UserBadgeRecord:
    """Fresh record for a user that has never unlocked anything."""
    level_info = compute_level(0)
    return UserBadgeRecord(
        user_id=user_id,
        unlocked_badges=[],
        total_points=0,
        level=level_info["level"],
        next_level_points=level_info["next_level_points"],
    )


class BadgeEvaluator:
    """Evaluates activity stats against the badge catalog for one store.

    Store failures never reach the caller: reads degrade to a default record,
    failed writes are logged and the in-memory result is still returned.
    """

    def __init__(
        self,
        store: BadgeStore,
        catalog: BadgeCatalog | None = None,
        redis: Redis | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.catalog = catalog if catalog is not None else get_catalog()
        self.redis = redis
        self._clock = clock

    async def get_user_badges(self, user_id: str) -> UserBadgeRecord:
        """Fetch a user's record, creating and persisting a default one if missing."""
        try:
            record = await self.store.read(user_id)
        except PersistenceUnavailable:
            logger.warning("Badge store unavailable for %s, using default record", user_id, exc_info=True)
            return default_record(user_id)

        if record is None:
            record = default_record(user_id)
            await self._save(record)
        return record

    async def is_unlocked(self, user_id: str, badge_id: str) -> bool:
        record = await self.get_user_badges(user_id)
        return record.has(badge_id)

    async def unlock_badge(self, user_id: str, badge_id: str) -> BadgeNotification | None:
        """Unlock one badge.

        Returns None, with no side effect, if the badge id is unknown or the
        badge is already unlocked.
        """
        badge = self.catalog.get(badge_id)
        if badge is None:
            logger.debug("Ignoring unlock of unknown badge %s", badge_id)
            return None

        record = await self.get_user_badges(user_id)
        if record.has(badge_id):
            return None
        return await self._unlock(record, badge)

    async def check_and_unlock(self, user_id: str, stats: ActivityStats) -> list[BadgeNotification]:
        """Unlock every locked badge whose rule the stats satisfy.

        Notifications come back in catalog order. Each unlock is persisted on
        its own; the pass is not atomic across badges.
        """
        record = await self.get_user_badges(user_id)
        notifications: list[BadgeNotification] = []

        for badge in self.catalog:
            if record.has(badge.id):
                continue
            if not self.catalog.rule_for(badge.id).is_met(stats):
                continue
            notifications.append(await self._unlock(record, badge))

        if notifications:
            logger.info(
                "User %s unlocked %d badge(s): %s",
                user_id,
                len(notifications),
                ", ".join(n.badge.id for n in notifications),
            )
        return notifications

    async def progress_for(self, user_id: str, stats: ActivityStats) -> list[BadgeProgress]:
        """Every catalog badge with the user's progress towards it.

        Unlocked badges are returned as stored. Custom badges show no partial
        progress while locked.
        """
        record = await self.get_user_badges(user_id)
        result: list[BadgeProgress] = []

        for badge in self.catalog:
            unlocked = record.get(badge.id)
            if unlocked is not None:
                result.append(BadgeProgress(**unlocked.model_dump(), unlocked=True))
                continue
            result.append(BadgeProgress(
                **badge.model_dump(),
                progress=self.catalog.rule_for(badge.id).progress(stats),
                unlocked=False,
            ))
        return result

    async def badges_by_category(
        self, user_id: str, stats: ActivityStats
    ) -> dict[BadgeCategory, list[BadgeProgress]]:
        """``progress_for`` grouped by category; every category key is present."""
        grouped: dict[BadgeCategory, list[BadgeProgress]] = {c: [] for c in BadgeCategory}
        for badge in await self.progress_for(user_id, stats):
            grouped[badge.category].append(badge)
        return grouped

    async def recently_unlocked(self, user_id: str, days: int = 7) -> list[UnlockedBadge]:
        """Badges unlocked in the last ``days`` days, newest first."""
        record = await self.get_user_badges(user_id)
        cutoff = self._clock() - timedelta(days=days)
        recent = [b for b in record.unlocked_badges if b.unlocked_at >= cutoff]
        return sorted(recent, key=lambda b: b.unlocked_at, reverse=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _unlock(self, record: UserBadgeRecord, badge: BadgeDefinition) -> BadgeNotification:
        unlocked = UnlockedBadge(**badge.model_dump(), unlocked_at=self._clock(), progress=100)
        old_level = record.level

        record.unlocked_badges.append(unlocked)
        record.total_points += badge.points

        level_info = compute_level(record.total_points)
        record.level = level_info["level"]
        record.next_level_points = level_info["next_level_points"]

        await self._save(record)
        await self._publish_unlock(record, unlocked, old_level)

        return BadgeNotification(
            badge=unlocked,
            message=f"You've unlocked: {badge.name}!",
            show_confetti=badge.tier in CONFETTI_TIERS,
        )

    async def _save(self, record: UserBadgeRecord) -> bool:
        """Persist a record. Returns False if it could not be saved durably."""
        try:
            await self.store.write(record)
        except PersistenceUnavailable:
            logger.warning("Badge record for %s not saved durably", record.user_id, exc_info=True)
            return False
        return True

    async def _publish_unlock(self, record: UserBadgeRecord, badge: UnlockedBadge, old_level: int) -> None:
        """Broadcast unlock and level-up events for live clients."""
        if self.redis is None:
            return
        try:
            await self.redis.publish(
                "pubsub:badge_unlocked",
                json.dumps({
                    "user_id": record.user_id,
                    "badge_id": badge.id,
                    "badge_name": badge.name,
                    "tier": badge.tier.value if badge.tier else None,
                    "points": badge.points,
                    "total_points": record.total_points,
                }),
            )
            if record.level > old_level:
                await self.redis.publish(
                    "pubsub:level_up",
                    json.dumps({
                        "user_id": record.user_id,
                        "old_level": old_level,
                        "new_level": record.level,
                        "next_level_points": record.next_level_points,
                    }),
                )
        except Exception:
            logger.warning("Failed to publish badge_unlocked event", exc_info=True)
