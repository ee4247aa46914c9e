"""Level staircase computation.

Level 1 costs 100 points to clear and every following level costs 50 more
than the one before (100, 150, 200, ...). These values MUST match the web
client's level display.
"""

from __future__ import annotations

BASE_LEVEL_COST = 100
LEVEL_COST_STEP = 50


def compute_level(total_points: int) -> dict:
    """Compute level info from total points.

    ``next_level_points`` is the cumulative total at which the next level-up
    happens. Negative input is treated as zero.
    """
    points = max(0, total_points)
    level = 1
    cleared = 0
    cost = BASE_LEVEL_COST

    while points >= cleared + cost:
        cleared += cost
        cost += LEVEL_COST_STEP
        level += 1

    return {
        "level": level,
        "next_level_points": cleared + cost,
        "points_into_level": points - cleared,
        "points_for_level": cost,
    }


def level_thresholds(count: int = 10) -> list[dict]:
    """First ``count`` levels with the cost to reach each and its cumulative total."""
    levels: list[dict] = []
    cumulative = 0
    cost = 0
    for level in range(1, count + 1):
        cumulative += cost
        levels.append({"level": level, "points_required": cost, "cumulative": cumulative})
        cost = BASE_LEVEL_COST if level == 1 else cost + LEVEL_COST_STEP
    return levels
