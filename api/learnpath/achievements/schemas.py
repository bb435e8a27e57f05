"""Pydantic schemas for achievements."""

from datetime import datetime

from pydantic import BaseModel

from .models import Achievement
from .service import AchievementFacts


class AchievementResponse(BaseModel):
    """Achievement definition, with unlock time when unlocked."""

    id: str
    name: str
    description: str
    icon: str
    metric: str
    threshold: int
    reward_points: int
    unlocked_at: datetime | None = None

    @classmethod
    def from_definition(
        cls, achievement: Achievement, unlocked_at: datetime | None = None
    ) -> "AchievementResponse":
        """Create response from a definition."""
        return cls(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            icon=achievement.icon,
            metric=achievement.metric.value,
            threshold=achievement.threshold,
            reward_points=achievement.reward_points,
            unlocked_at=unlocked_at,
        )


class AchievementProgress(BaseModel):
    """Counters achievement conditions are checked against."""

    lessons_completed: int
    courses_completed: int
    points: int
    streak: int

    @classmethod
    def from_facts(cls, facts: AchievementFacts) -> "AchievementProgress":
        """Create response from facts."""
        return cls(
            lessons_completed=facts.lessons_completed,
            courses_completed=facts.courses_completed,
            points=facts.points,
            streak=facts.streak,
        )


class AchievementsResponse(BaseModel):
    """Achievements overview for the current user."""

    unlocked: list[AchievementResponse]
    locked: list[AchievementResponse]
    progress: AchievementProgress


class EvaluateResponse(BaseModel):
    """Achievements unlocked by an evaluation."""

    newly_unlocked: list[AchievementResponse]
