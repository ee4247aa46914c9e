"""Badge unlock rules.

Every catalog badge is bound to exactly one rule when the catalog loads.
Threshold requirement types map to a stat counter; ``custom`` badges are
looked up by id in ``CUSTOM_RULES``. A custom id with no entry there is bound
to ``NeverUnlocks`` so it can never be awarded by accident.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from rehabmotion.gamification.schemas import ActivityStats, BadgeDefinition, RequirementType

logger = logging.getLogger(__name__)


def _stat_value(stats: ActivityStats, stat: str) -> float:
    value = getattr(stats, stat)
    return 0 if value is None else value


@dataclass(frozen=True)
class StatThreshold:
    """Unlocks once ``stats.<stat>`` reaches ``threshold``.

    ``partial_progress`` controls whether locked badges report a percentage;
    custom badges always show 0 while locked.
    """

    stat: str
    threshold: float
    partial_progress: bool = True

    def is_met(self, stats: ActivityStats) -> bool:
        return _stat_value(stats, self.stat) >= self.threshold

    def progress(self, stats: ActivityStats) -> int:
        if not self.partial_progress:
            return 0
        if self.threshold <= 0:
            return 100
        percent = 100 * _stat_value(stats, self.stat) / self.threshold
        # Half-up rounding to match the web client's Math.round.
        return int(math.floor(min(100.0, max(0.0, percent)) + 0.5))


@dataclass(frozen=True)
class FlagSet:
    """Unlocks when a boolean session flag is set."""

    flag: str

    def is_met(self, stats: ActivityStats) -> bool:
        return bool(getattr(stats, self.flag))

    def progress(self, stats: ActivityStats) -> int:
        return 0


@dataclass(frozen=True)
class NeverUnlocks:
    """Bound to custom badges that have no rule."""

    badge_id: str

    def is_met(self, stats: ActivityStats) -> bool:
        return False

    def progress(self, stats: ActivityStats) -> int:
        return 0


Rule = StatThreshold | FlagSet | NeverUnlocks


THRESHOLD_STATS: dict[RequirementType, str] = {
    RequirementType.EXERCISES: "exercises_completed",
    RequirementType.DAYS: "days_active",
    RequirementType.STREAK: "current_streak",
    RequirementType.PHASES: "phases_completed",
    RequirementType.PAIN_FREE: "pain_free_sessions",
    RequirementType.VIDEOS: "videos_watched",
}

CUSTOM_RULES: dict[str, Rule] = {
    "halfway-there": StatThreshold("progress_percentage", 50, partial_progress=False),
    "almost-done": StatThreshold("progress_percentage", 75, partial_progress=False),
    "full-recovery": StatThreshold("progress_percentage", 100, partial_progress=False),
    "angle-master": StatThreshold("angle_detection_used", 10, partial_progress=False),
    "early-bird": FlagSet("is_early_morning"),
    "night-owl": FlagSet("is_late_night"),
    "weekend-warrior": FlagSet("is_weekend"),
    "comeback-kid": FlagSet("had_long_break"),
}


def resolve_rule(badge: BadgeDefinition) -> Rule:
    """Bind a badge definition to the rule that decides its unlock."""
    if badge.requirement_type is RequirementType.CUSTOM:
        rule = CUSTOM_RULES.get(badge.id)
        if rule is None:
            logger.warning("No custom rule for badge %s; it will never unlock", badge.id)
            return NeverUnlocks(badge.id)
        return rule
    return StatThreshold(THRESHOLD_STATS[badge.requirement_type], badge.requirement)
