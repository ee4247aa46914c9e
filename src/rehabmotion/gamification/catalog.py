"""Badge catalog: the 21 rehab achievements shown in the web client.

The catalog is ordered: unlock passes and progress listings follow this order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from functools import lru_cache

from rehabmotion.gamification.rules import Rule, resolve_rule
from rehabmotion.gamification.schemas import BadgeDefinition

logger = logging.getLogger(__name__)

BADGE_CATALOG_DATA: list[dict] = [
    # Milestones
    {
        "id": "first-steps",
        "name": "First Steps",
        "description": "Complete your first exercise",
        "icon": "👣",
        "category": "milestone",
        "tier": "bronze",
        "requirement_type": "exercises",
        "requirement": 1,
        "points": 10,
    },
    {
        "id": "getting-started",
        "name": "Getting Started",
        "description": "Complete 5 exercises",
        "icon": "🚀",
        "category": "milestone",
        "tier": "bronze",
        "requirement_type": "exercises",
        "requirement": 5,
        "points": 25,
    },
    {
        "id": "committed",
        "name": "Committed",
        "description": "Complete 25 exercises",
        "icon": "💪",
        "category": "milestone",
        "tier": "silver",
        "requirement_type": "exercises",
        "requirement": 25,
        "points": 50,
    },
    {
        "id": "dedicated",
        "name": "Dedicated",
        "description": "Complete 50 exercises",
        "icon": "🏋️",
        "category": "milestone",
        "tier": "gold",
        "requirement_type": "exercises",
        "requirement": 50,
        "points": 100,
    },
    {
        "id": "champion",
        "name": "Champion",
        "description": "Complete 100 exercises",
        "icon": "🏆",
        "category": "milestone",
        "tier": "platinum",
        "requirement_type": "exercises",
        "requirement": 100,
        "points": 200,
    },
    # Streaks
    {
        "id": "day-one",
        "name": "Day One",
        "description": "Start your rehab journey",
        "icon": "☀️",
        "category": "streak",
        "tier": "bronze",
        "requirement_type": "days",
        "requirement": 1,
        "points": 5,
    },
    {
        "id": "week-warrior",
        "name": "Week Warrior",
        "description": "Stay active for 7 days",
        "icon": "🔥",
        "category": "streak",
        "tier": "silver",
        "requirement_type": "streak",
        "requirement": 7,
        "points": 50,
    },
    {
        "id": "two-week-streak",
        "name": "Two Week Streak",
        "description": "Maintain a 14-day streak",
        "icon": "⚡",
        "category": "streak",
        "tier": "silver",
        "requirement_type": "streak",
        "requirement": 14,
        "points": 75,
    },
    {
        "id": "month-master",
        "name": "Month Master",
        "description": "Stay consistent for 30 days",
        "icon": "🌟",
        "category": "streak",
        "tier": "gold",
        "requirement_type": "streak",
        "requirement": 30,
        "points": 150,
    },
    {
        "id": "unstoppable",
        "name": "Unstoppable",
        "description": "Achieve a 50-day streak",
        "icon": "💥",
        "category": "streak",
        "tier": "platinum",
        "requirement_type": "streak",
        "requirement": 50,
        "points": 250,
    },
    # Progress
    {
        "id": "phase-one",
        "name": "Phase One Complete",
        "description": "Complete your first rehab phase",
        "icon": "🎯",
        "category": "progress",
        "tier": "bronze",
        "requirement_type": "phases",
        "requirement": 1,
        "points": 30,
    },
    {
        "id": "halfway-there",
        "name": "Halfway There",
        "description": "Reach 50% program completion",
        "icon": "📈",
        "category": "progress",
        "tier": "silver",
        "requirement_type": "custom",
        "requirement": 50,
        "points": 75,
    },
    {
        "id": "almost-done",
        "name": "Almost Done",
        "description": "Reach 75% program completion",
        "icon": "🎖️",
        "category": "progress",
        "tier": "gold",
        "requirement_type": "custom",
        "requirement": 75,
        "points": 100,
    },
    {
        "id": "full-recovery",
        "name": "Full Recovery",
        "description": "Complete your entire rehab program",
        "icon": "🎉",
        "category": "progress",
        "tier": "platinum",
        "requirement_type": "custom",
        "requirement": 100,
        "points": 300,
    },
    # Exercise videos
    {
        "id": "video-learner",
        "name": "Video Learner",
        "description": "Watch 5 exercise demonstration videos",
        "icon": "📹",
        "category": "exercise",
        "tier": "bronze",
        "requirement_type": "videos",
        "requirement": 5,
        "points": 20,
    },
    {
        "id": "video-enthusiast",
        "name": "Video Enthusiast",
        "description": "Watch 15 exercise demonstration videos",
        "icon": "🎬",
        "category": "exercise",
        "tier": "silver",
        "requirement_type": "videos",
        "requirement": 15,
        "points": 50,
    },
    {
        "id": "video-master",
        "name": "Video Master",
        "description": "Watch 30 exercise demonstration videos",
        "icon": "🎥",
        "category": "exercise",
        "tier": "gold",
        "requirement_type": "videos",
        "requirement": 30,
        "points": 100,
    },
    # Special sessions
    {
        "id": "early-bird",
        "name": "Early Bird",
        "description": "Complete exercises before 8 AM",
        "icon": "🌅",
        "category": "special",
        "tier": "gold",
        "requirement_type": "custom",
        "requirement": 1,
        "points": 40,
    },
    {
        "id": "night-owl",
        "name": "Night Owl",
        "description": "Complete exercises after 8 PM",
        "icon": "🌙",
        "category": "special",
        "tier": "gold",
        "requirement_type": "custom",
        "requirement": 1,
        "points": 40,
    },
    {
        "id": "weekend-warrior",
        "name": "Weekend Warrior",
        "description": "Stay active on weekends",
        "icon": "🏖️",
        "category": "special",
        "tier": "silver",
        "requirement_type": "custom",
        "requirement": 5,
        "points": 35,
    },
    {
        "id": "comeback-kid",
        "name": "Comeback Kid",
        "description": "Resume training after a 7-day break",
        "icon": "🔄",
        "category": "special",
        "tier": "bronze",
        "requirement_type": "custom",
        "requirement": 1,
        "points": 25,
    },
]


class BadgeCatalog:
    """Ordered, read-only set of badge definitions with their unlock rules."""

    def __init__(self, definitions: list[BadgeDefinition]) -> None:
        self._definitions = tuple(definitions)
        self._by_id: dict[str, BadgeDefinition] = {}
        for badge in self._definitions:
            if badge.id in self._by_id:
                msg = f"Duplicate badge id in catalog: {badge.id}"
                raise ValueError(msg)
            self._by_id[badge.id] = badge
        self._rules: dict[str, Rule] = {b.id: resolve_rule(b) for b in self._definitions}

    def __iter__(self) -> Iterator[BadgeDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, badge_id: object) -> bool:
        return badge_id in self._by_id

    def get(self, badge_id: str) -> BadgeDefinition | None:
        return self._by_id.get(badge_id)

    def rule_for(self, badge_id: str) -> Rule:
        return self._rules[badge_id]


def load_catalog(data: list[dict] | None = None) -> BadgeCatalog:
    """Validate raw badge dicts and build a catalog."""
    raw = BADGE_CATALOG_DATA if data is None else data
    catalog = BadgeCatalog([BadgeDefinition.model_validate(item) for item in raw])
    logger.info("Loaded %d badge definitions", len(catalog))
    return catalog


@lru_cache
def get_catalog() -> BadgeCatalog:
    """Get the process-wide default catalog."""
    return load_catalog()
