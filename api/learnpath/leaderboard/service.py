"""Leaderboard ranking.

A read-only view over the points ledger covering every mirrored user, with a
missing total counting as 0: points descending, then user id (string form,
ascending) so equal totals always rank the same way. Pages can be cached in
Redis; any Redis failure falls back to computing the page.
"""

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING
from uuid import UUID

import orjson
import structlog
from redis.exceptions import RedisError

from learnpath.core.redis import leaderboard_cache_key


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from learnpath.points.service import PointsLedger
    from learnpath.progress.service import ProgressService
    from learnpath.users.service import UserService

logger = structlog.get_logger(__name__)


@dataclass
class LeaderboardEntry:
    """One ranked user."""

    rank: int
    user_id: str
    name: str
    image_url: str | None
    points: int
    streak: int
    courses_completed: int


def rank_totals(totals: dict[UUID, int], limit: int) -> list[tuple[UUID, int]]:
    """Top ``limit`` (user id, points) pairs in rank order."""
    ordered = sorted(totals.items(), key=lambda item: (-item[1], str(item[0])))
    return ordered[:limit]


class LeaderboardService:
    """Builds leaderboard pages."""

    def __init__(
        self,
        points_ledger: "PointsLedger",
        user_service: "UserService",
        progress_service: "ProgressService",
        redis: "Redis | None" = None,
        default_limit: int = 10,
        max_limit: int = 100,
        cache_ttl_seconds: int = 0,
    ):
        self.points_ledger = points_ledger
        self.user_service = user_service
        self.progress_service = progress_service
        self.redis = redis
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.cache_ttl_seconds = cache_ttl_seconds

    def clamp_limit(self, limit: int | None) -> int:
        """Page size within [1, max_limit]."""
        if limit is None:
            limit = self.default_limit
        return max(1, min(limit, self.max_limit))

    @property
    def _cache_enabled(self) -> bool:
        return self.redis is not None and self.cache_ttl_seconds > 0

    async def get_leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        """Top users by points. ``rank`` is the 1-based position in the page."""
        limit = self.clamp_limit(limit)

        cached = await self._read_cache(limit)
        if cached is not None:
            return cached

        entries = await self._compute(limit)
        await self._write_cache(limit, entries)
        return entries

    async def _compute(self, limit: int) -> list[LeaderboardEntry]:
        users = await self.user_service.list_users()
        totals = await self.points_ledger.list_totals()
        ranked = rank_totals({user_id: totals.get(user_id, 0) for user_id in users}, limit)

        entries = []
        for position, (user_id, points) in enumerate(ranked, start=1):
            user = users[user_id]
            entries.append(
                LeaderboardEntry(
                    rank=position,
                    user_id=str(user_id),
                    name=user.name,
                    image_url=user.image_url,
                    points=points,
                    streak=user.streak,
                    courses_completed=await self.progress_service.count_completed_courses(
                        user_id
                    ),
                )
            )
        return entries

    async def _read_cache(self, limit: int) -> list[LeaderboardEntry] | None:
        if not self._cache_enabled:
            return None
        try:
            raw = await self.redis.get(leaderboard_cache_key(limit))
        except RedisError as e:
            logger.warning("leaderboard_cache_read_failed", error=str(e))
            return None
        if raw is None:
            return None
        return [LeaderboardEntry(**item) for item in orjson.loads(raw)]

    async def _write_cache(self, limit: int, entries: list[LeaderboardEntry]) -> None:
        if not self._cache_enabled:
            return
        payload = orjson.dumps([asdict(entry) for entry in entries])
        try:
            await self.redis.set(
                leaderboard_cache_key(limit), payload, ex=self.cache_ttl_seconds
            )
        except RedisError as e:
            logger.warning("leaderboard_cache_write_failed", error=str(e))
