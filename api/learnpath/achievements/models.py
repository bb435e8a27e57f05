"""Achievement catalogue and unlock records.

Achievements are defined in code; only unlocks are stored. The unlock row is
written with a conditional insert and starts with ``reward_paid = false``.
The reward is claimed by flipping that flag conditionally before the points
increment, and released again if the increment fails, so an unpaid unlock
is picked up by the next evaluation.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware


class AchievementMetric(str, Enum):
    """Aggregate fact an achievement condition is checked against."""

    LESSONS_COMPLETED = "lessons_completed"
    COURSES_COMPLETED = "courses_completed"
    POINTS = "points"
    STREAK = "streak"


@dataclass(frozen=True)
class Achievement:
    """A named award unlocked once ``metric >= threshold``."""

    id: str
    name: str
    description: str
    icon: str
    metric: AchievementMetric
    threshold: int
    reward_points: int


ACHIEVEMENTS: list[Achievement] = [
    Achievement(
        "first_lesson", "First Steps", "Completed your first lesson",
        "📘", AchievementMetric.LESSONS_COMPLETED, 1, 10,
    ),
    Achievement(
        "lessons_10", "Dedicated Learner", "Completed 10 lessons",
        "📚", AchievementMetric.LESSONS_COMPLETED, 10, 25,
    ),
    Achievement(
        "first_course", "Course Finisher", "Completed your first course",
        "🎓", AchievementMetric.COURSES_COMPLETED, 1, 50,
    ),
    Achievement(
        "courses_5", "Scholar", "Completed 5 courses",
        "🏛️", AchievementMetric.COURSES_COMPLETED, 5, 100,
    ),
    Achievement(
        "points_100", "Point Collector", "Earned 100 points",
        "⭐", AchievementMetric.POINTS, 100, 20,
    ),
    Achievement(
        "points_1000", "High Achiever", "Earned 1000 points",
        "🏆", AchievementMetric.POINTS, 1000, 100,
    ),
    Achievement(
        "streak_7", "Week Warrior", "Studied 7 days in a row",
        "🔥", AchievementMetric.STREAK, 7, 30,
    ),
    Achievement(
        "streak_30", "Unstoppable", "Studied 30 days in a row",
        "🚀", AchievementMetric.STREAK, 30, 100,
    ),
]


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USER_ACHIEVEMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_achievements (
    user_id UUID,
    achievement_id TEXT,
    unlocked_at TIMESTAMP,
    reward_paid BOOLEAN,
    PRIMARY KEY ((user_id), achievement_id)
)
"""

ACHIEVEMENTS_TABLES_CQL = [
    USER_ACHIEVEMENTS_TABLE_CQL,
]


class UserAchievement:
    """Unlock record, unique per (user, achievement)."""

    def __init__(
        self,
        user_id: UUID,
        achievement_id: str,
        unlocked_at: datetime | None,
        reward_paid: bool | None = None,
    ):
        self.user_id = user_id
        self.achievement_id = achievement_id
        self.unlocked_at = ensure_utc_aware(unlocked_at)
        self.reward_paid = reward_paid

    @property
    def reward_pending(self) -> bool:
        return self.reward_paid is False

    @classmethod
    def from_row(cls, row: Any) -> "UserAchievement":
        """Create UserAchievement instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            achievement_id=row.achievement_id,
            unlocked_at=row.unlocked_at,
            reward_paid=row.reward_paid,
        )
