"""Rule-based achievements, each unlocked at most once per user."""

from .models import ACHIEVEMENTS, ACHIEVEMENTS_TABLES_CQL, Achievement, AchievementMetric


__all__ = ["ACHIEVEMENTS", "ACHIEVEMENTS_TABLES_CQL", "Achievement", "AchievementMetric"]
