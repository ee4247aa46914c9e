"""Shared FastAPI dependencies."""

from fastapi import Request

from rehabmotion.gamification.badge_service import BadgeEvaluator


def get_badge_evaluator(request: Request) -> BadgeEvaluator:
    """Return the evaluator built during app startup."""
    evaluator: BadgeEvaluator | None = getattr(request.app.state, "badge_evaluator", None)
    if evaluator is None:
        msg = "Badge evaluator not initialized. Is the app lifespan running?"
        raise RuntimeError(msg)
    return evaluator
