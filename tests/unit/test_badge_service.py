"""Badge evaluator unit tests: unlocks, duplicate prevention, points and levels."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from rehabmotion.gamification.badge_service import BadgeEvaluator
from rehabmotion.gamification.schemas import ActivityStats

USER = "user-123"


def _points_sum(record) -> int:
    return sum(b.points for b in record.unlocked_badges)


class TestGetUserBadges:
    @pytest.mark.asyncio
    async def test_new_user_gets_default_record(self, evaluator, store):
        record = await evaluator.get_user_badges(USER)
        assert record.user_id == USER
        assert record.total_points == 0
        assert record.level == 1
        assert record.next_level_points == 100
        assert record.unlocked_badges == []
        # Default record is persisted on first access
        assert USER in store

    @pytest.mark.asyncio
    async def test_returns_existing_record(self, evaluator):
        await evaluator.unlock_badge(USER, "first-steps")
        record = await evaluator.get_user_badges(USER)
        assert [b.id for b in record.unlocked_badges] == ["first-steps"]

    @pytest.mark.asyncio
    async def test_store_read_failure_returns_default(self, evaluator, store):
        await evaluator.unlock_badge(USER, "first-steps")
        store.fail_reads = True
        record = await evaluator.get_user_badges(USER)
        assert record.total_points == 0
        assert record.level == 1

    @pytest.mark.asyncio
    async def test_store_write_failure_still_returns_default(self, evaluator, store):
        store.fail_writes = True
        record = await evaluator.get_user_badges(USER)
        assert record.total_points == 0
        assert USER not in store


class TestUnlockBadge:
    @pytest.mark.asyncio
    async def test_unlock_returns_notification(self, evaluator, clock):
        notification = await evaluator.unlock_badge(USER, "first-steps")
        assert notification is not None
        assert notification.badge.id == "first-steps"
        assert notification.badge.progress == 100
        assert notification.badge.unlocked_at == clock.now
        assert notification.message == "You've unlocked: First Steps!"
        assert notification.show_confetti is False

    @pytest.mark.asyncio
    async def test_unlock_is_idempotent(self, evaluator):
        first = await evaluator.unlock_badge(USER, "first-steps")
        second = await evaluator.unlock_badge(USER, "first-steps")
        assert first is not None
        assert second is None

        record = await evaluator.get_user_badges(USER)
        assert [b.id for b in record.unlocked_badges] == ["first-steps"]
        assert record.total_points == 10  # Not 20

    @pytest.mark.asyncio
    async def test_unknown_badge_is_noop(self, evaluator, store):
        assert await evaluator.unlock_badge(USER, "nonexistent_badge") is None
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_platinum_badge_shows_confetti(self, evaluator):
        notification = await evaluator.unlock_badge(USER, "champion")
        assert notification.show_confetti is True

    @pytest.mark.asyncio
    async def test_gold_badge_shows_confetti(self, evaluator):
        notification = await evaluator.unlock_badge(USER, "early-bird")
        assert notification.show_confetti is True

    @pytest.mark.asyncio
    async def test_silver_badge_no_confetti(self, evaluator):
        notification = await evaluator.unlock_badge(USER, "week-warrior")
        assert notification.show_confetti is False

    @pytest.mark.asyncio
    async def test_points_and_level_accumulate(self, evaluator):
        await evaluator.unlock_badge(USER, "champion")  # 200
        await evaluator.unlock_badge(USER, "first-steps")  # 10
        record = await evaluator.get_user_badges(USER)
        assert record.total_points == 210
        assert record.level == 2
        assert record.next_level_points == 250

    @pytest.mark.asyncio
    async def test_is_unlocked(self, evaluator):
        assert await evaluator.is_unlocked(USER, "day-one") is False
        await evaluator.unlock_badge(USER, "day-one")
        assert await evaluator.is_unlocked(USER, "day-one") is True

    @pytest.mark.asyncio
    async def test_write_failure_is_soft(self, evaluator, store):
        await evaluator.get_user_badges(USER)
        store.fail_writes = True

        notification = await evaluator.unlock_badge(USER, "first-steps")
        assert notification is not None

        # Known durability gap: the unlock was not saved
        store.fail_writes = False
        assert await evaluator.is_unlocked(USER, "first-steps") is False


class TestCheckAndUnlock:
    @pytest.mark.asyncio
    async def test_five_exercises_unlock_two_badges(self, evaluator):
        notifications = await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=5))
        assert [n.badge.id for n in notifications] == ["first-steps", "getting-started"]

    @pytest.mark.asyncio
    async def test_progress_60_unlocks_only_halfway(self, evaluator):
        notifications = await evaluator.check_and_unlock(USER, ActivityStats(progress_percentage=60))
        ids = [n.badge.id for n in notifications]
        assert ids == ["halfway-there"]
        assert await evaluator.is_unlocked(USER, "almost-done") is False
        assert await evaluator.is_unlocked(USER, "full-recovery") is False

    @pytest.mark.asyncio
    async def test_empty_stats_unlock_nothing(self, evaluator):
        assert await evaluator.check_and_unlock(USER, ActivityStats()) == []

    @pytest.mark.asyncio
    async def test_already_unlocked_badges_skipped(self, evaluator):
        await evaluator.unlock_badge(USER, "first-steps")
        notifications = await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=5))
        assert [n.badge.id for n in notifications] == ["getting-started"]

    @pytest.mark.asyncio
    async def test_second_pass_is_empty(self, evaluator):
        stats = ActivityStats(exercises_completed=30, days_active=3, is_weekend=True)
        first = await evaluator.check_and_unlock(USER, stats)
        second = await evaluator.check_and_unlock(USER, stats)
        assert len(first) == 5  # first-steps, getting-started, committed, day-one, weekend-warrior
        assert second == []

    @pytest.mark.asyncio
    async def test_notifications_follow_catalog_order(self, evaluator, catalog):
        stats = ActivityStats(
            exercises_completed=100,
            current_streak=50,
            days_active=1,
            phases_completed=1,
            progress_percentage=100,
            videos_watched=30,
            is_weekend=True,
            is_early_morning=True,
            is_late_night=True,
            had_long_break=True,
        )
        notifications = await evaluator.check_and_unlock(USER, stats)
        assert [n.badge.id for n in notifications] == [b.id for b in catalog]

    @pytest.mark.asyncio
    async def test_total_points_match_unlocked_badges(self, evaluator):
        await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=25, current_streak=14))
        await evaluator.unlock_badge(USER, "night-owl")
        await evaluator.check_and_unlock(USER, ActivityStats(videos_watched=15, progress_percentage=80))

        record = await evaluator.get_user_badges(USER)
        assert record.total_points == _points_sum(record)
        assert len({b.id for b in record.unlocked_badges}) == len(record.unlocked_badges)

    @pytest.mark.asyncio
    async def test_each_unlock_persisted(self, evaluator, store):
        await evaluator.get_user_badges(USER)
        writes_before = store.writes
        await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=5))
        assert store.writes - writes_before == 2

    @pytest.mark.asyncio
    async def test_hard_failure_mid_pass_keeps_earlier_unlocks(self, evaluator, store):
        await evaluator.get_user_badges(USER)
        original_write = store.write
        calls = 0

        async def failing_write(record):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("connection reset")
            await original_write(record)

        store.write = failing_write
        with pytest.raises(RuntimeError):
            await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=5))

        store.write = original_write
        assert await evaluator.is_unlocked(USER, "first-steps") is True
        assert await evaluator.is_unlocked(USER, "getting-started") is False

        # Re-evaluated on the next pass
        notifications = await evaluator.check_and_unlock(USER, ActivityStats(exercises_completed=5))
        assert [n.badge.id for n in notifications] == ["getting-started"]


class TestProgressFor:
    @pytest.mark.asyncio
    async def test_locked_threshold_progress(self, evaluator):
        badges = {b.id: b for b in await evaluator.progress_for(USER, ActivityStats(current_streak=20))}
        assert badges["unstoppable"].progress == 40  # 20 / 50
        assert badges["unstoppable"].unlocked is False

    @pytest.mark.asyncio
    async def test_progress_clamped_while_locked(self, evaluator):
        badges = {b.id: b for b in await evaluator.progress_for(USER, ActivityStats(current_streak=80))}
        assert badges["unstoppable"].progress == 100
        assert badges["unstoppable"].unlocked is False
        assert await evaluator.is_unlocked(USER, "unstoppable") is False

    @pytest.mark.asyncio
    async def test_custom_badges_show_zero_progress(self, evaluator):
        stats = ActivityStats(progress_percentage=70, is_weekend=True)
        badges = {b.id: b for b in await evaluator.progress_for(USER, stats)}
        assert badges["almost-done"].progress == 0
        assert badges["weekend-warrior"].progress == 0

    @pytest.mark.asyncio
    async def test_unlocked_badges_returned_as_stored(self, evaluator, clock):
        await evaluator.unlock_badge(USER, "video-learner")
        badges = {b.id: b for b in await evaluator.progress_for(USER, ActivityStats())}
        assert badges["video-learner"].unlocked is True
        assert badges["video-learner"].progress == 100
        assert badges["video-learner"].unlocked_at == clock.now

    @pytest.mark.asyncio
    async def test_covers_whole_catalog(self, evaluator, catalog):
        badges = await evaluator.progress_for(USER, ActivityStats())
        assert [b.id for b in badges] == [b.id for b in catalog]


class TestBadgesByCategory:
    @pytest.mark.asyncio
    async def test_groups_every_category(self, evaluator):
        grouped = await evaluator.badges_by_category(USER, ActivityStats())
        assert {c.value for c in grouped} == {"milestone", "streak", "progress", "exercise", "special"}
        assert [b.id for b in grouped["milestone"]] == [
            "first-steps", "getting-started", "committed", "dedicated", "champion",
        ]
        assert sum(len(v) for v in grouped.values()) == 21


class TestRecentlyUnlocked:
    @pytest.mark.asyncio
    async def test_newest_first_within_window(self, evaluator, clock):
        await evaluator.unlock_badge(USER, "first-steps")
        clock.advance(days=3)
        await evaluator.unlock_badge(USER, "day-one")
        clock.advance(days=1)
        await evaluator.unlock_badge(USER, "phase-one")

        recent = await evaluator.recently_unlocked(USER)
        assert [b.id for b in recent] == ["phase-one", "day-one", "first-steps"]

    @pytest.mark.asyncio
    async def test_old_badges_excluded(self, evaluator, clock):
        await evaluator.unlock_badge(USER, "first-steps")
        clock.advance(days=8)
        await evaluator.unlock_badge(USER, "day-one")

        recent = await evaluator.recently_unlocked(USER, days=7)
        assert [b.id for b in recent] == ["day-one"]


class TestPublishing:
    @pytest.mark.asyncio
    async def test_unlock_publishes_event(self, store, catalog, clock):
        redis = AsyncMock()
        evaluator = BadgeEvaluator(store, catalog, redis=redis, clock=clock)

        await evaluator.unlock_badge(USER, "first-steps")

        redis.publish.assert_awaited_once()
        channel, payload = redis.publish.await_args.args
        assert channel == "pubsub:badge_unlocked"
        assert json.loads(payload)["badge_id"] == "first-steps"

    @pytest.mark.asyncio
    async def test_level_up_publishes_second_event(self, store, catalog, clock):
        redis = AsyncMock()
        evaluator = BadgeEvaluator(store, catalog, redis=redis, clock=clock)

        await evaluator.unlock_badge(USER, "champion")  # 200 points -> level 2

        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert channels == ["pubsub:badge_unlocked", "pubsub:level_up"]

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_block_unlock(self, store, catalog, clock):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        evaluator = BadgeEvaluator(store, catalog, redis=redis, clock=clock)

        notification = await evaluator.unlock_badge(USER, "first-steps")
        assert notification is not None
        assert await evaluator.is_unlocked(USER, "first-steps") is True
