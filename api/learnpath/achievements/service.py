"""Achievement unlock evaluation.

Re-derives everything from persisted facts, so it is safe to run any number
of times after any event.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException, RequestExecutionException

from learnpath.core.clock import utc_now

from .models import ACHIEVEMENTS, Achievement, AchievementMetric, UserAchievement


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.points.service import PointsLedger
    from learnpath.progress.service import ProgressService
    from learnpath.users.service import UserService

logger = structlog.get_logger(__name__)


@dataclass
class AchievementFacts:
    """Aggregate facts achievement conditions are checked against."""

    lessons_completed: int = 0
    courses_completed: int = 0
    points: int = 0
    streak: int = 0

    def value(self, metric: AchievementMetric) -> int:
        return getattr(self, metric.value)


@dataclass
class AchievementsOverview:
    """Unlocked and locked achievements with the facts behind them."""

    unlocked: list[tuple[Achievement, UserAchievement]] = field(default_factory=list)
    locked: list[Achievement] = field(default_factory=list)
    facts: AchievementFacts = field(default_factory=AchievementFacts)


class AchievementService:
    """Evaluates achievement rules and records unlocks."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        progress_service: "ProgressService",
        points_ledger: "PointsLedger",
        user_service: "UserService",
        achievements: list[Achievement] | None = None,
    ):
        """Initialize with Cassandra session and fact sources."""
        self.session = session
        self.keyspace = keyspace
        self.progress_service = progress_service
        self.points_ledger = points_ledger
        self.user_service = user_service
        self.achievements = achievements if achievements is not None else ACHIEVEMENTS
        self._achievements_by_id = {a.id: a for a in self.achievements}
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_unlock = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.user_achievements
            (user_id, achievement_id, unlocked_at, reward_paid)
            VALUES (?, ?, ?, false)
            IF NOT EXISTS
        """)

        self._claim_reward = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_achievements
            SET reward_paid = true
            WHERE user_id = ? AND achievement_id = ?
            IF reward_paid = false
        """)

        self._release_reward = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_achievements
            SET reward_paid = false
            WHERE user_id = ? AND achievement_id = ?
            IF reward_paid = true
        """)

        self._get_unlocks = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.user_achievements WHERE user_id = ?
        """)

    async def get_facts(self, user_id: UUID) -> AchievementFacts:
        """Collect the user's current aggregate facts."""
        user = await self.user_service.require_user(user_id)
        return AchievementFacts(
            lessons_completed=await self.progress_service.count_completed_lessons(user_id),
            courses_completed=await self.progress_service.count_completed_courses(user_id),
            points=await self.points_ledger.get_points(user_id),
            streak=user.streak,
        )

    async def _load_unlocks(self, user_id: UUID) -> dict[str, UserAchievement]:
        rows = await self.session.aexecute(self._get_unlocks, [user_id])
        unlocks = [UserAchievement.from_row(row) for row in rows]
        return {u.achievement_id: u for u in unlocks}

    async def _pay_reward(self, user_id: UUID, achievement: Achievement) -> bool:
        """Claim and pay an unlock's reward.

        The claim is released when the increment fails, leaving the reward
        pending for the next evaluation.

        Returns:
            True if this call paid it, False if another caller already had
        """
        claim = await self.session.aexecute(
            self._claim_reward, [user_id, achievement.id]
        )
        if not claim.was_applied:
            return False

        try:
            await self.points_ledger.award_points(
                user_id,
                achievement.reward_points,
                reason=f"achievement:{achievement.id}",
            )
        except (DriverException, RequestExecutionException) as e:
            logger.warning(
                "achievement_reward_failed",
                user_id=str(user_id),
                achievement_id=achievement.id,
                error=str(e),
            )
            await self.session.aexecute(self._release_reward, [user_id, achievement.id])
            raise
        return True

    async def evaluate_and_unlock(self, user_id: UUID) -> list[Achievement]:
        """Unlock every satisfied achievement and pay outstanding rewards.

        Each reward is claimed conditionally on the unlock row before it is
        paid, so concurrent or repeated evaluations pay it once. Unlocks left
        unpaid by an earlier failure are paid first. Rewards raise the points
        total, so evaluation repeats until a round unlocks nothing new.

        Returns:
            Achievements whose reward this call paid
        """
        unlocks = await self._load_unlocks(user_id)
        paid: list[Achievement] = []

        for unlock in unlocks.values():
            achievement = self._achievements_by_id.get(unlock.achievement_id)
            if achievement and unlock.reward_pending:
                if await self._pay_reward(user_id, achievement):
                    paid.append(achievement)

        unlocked_ids = set(unlocks)
        facts = await self.get_facts(user_id)

        for _ in range(len(self.achievements)):
            round_paid = []
            for achievement in self.achievements:
                if achievement.id in unlocked_ids:
                    continue
                if facts.value(achievement.metric) < achievement.threshold:
                    continue

                unlocked_ids.add(achievement.id)
                result = await self.session.aexecute(
                    self._insert_unlock, [user_id, achievement.id, utc_now()]
                )
                if not result.was_applied:
                    continue

                logger.info(
                    "achievement_unlocked",
                    user_id=str(user_id),
                    achievement_id=achievement.id,
                    reward_points=achievement.reward_points,
                )
                if await self._pay_reward(user_id, achievement):
                    round_paid.append(achievement)

            if not round_paid:
                break
            paid.extend(round_paid)
            facts.points = await self.points_ledger.get_points(user_id)

        return paid

    async def get_achievements(self, user_id: UUID) -> AchievementsOverview:
        """Unlocked and locked achievements plus progress counters."""
        unlocks = await self._load_unlocks(user_id)
        facts = await self.get_facts(user_id)

        overview = AchievementsOverview(facts=facts)
        for achievement in self.achievements:
            unlock = unlocks.get(achievement.id)
            if unlock:
                overview.unlocked.append((achievement, unlock))
            else:
                overview.locked.append(achievement)
        return overview
