"""Tests for leaderboard ranking."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import UUID

import orjson
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from learnpath.leaderboard.service import LeaderboardService, rank_totals


def make_service(services: SimpleNamespace, redis=None, ttl: int = 0) -> LeaderboardService:
    return LeaderboardService(
        points_ledger=services.points_ledger,
        user_service=services.user_service,
        progress_service=services.progress_service,
        redis=redis,
        default_limit=10,
        max_limit=100,
        cache_ttl_seconds=ttl,
    )


class TestRankTotals:
    """Tests for rank_totals."""

    def test_points_descending(self):
        a = UUID("00000000-0000-0000-0000-00000000000a")
        b = UUID("00000000-0000-0000-0000-00000000000b")

        assert rank_totals({a: 10, b: 30}, 10) == [(b, 30), (a, 10)]

    def test_ties_break_on_user_id(self):
        """Equal totals rank by user id string, ascending."""
        low = UUID("10000000-0000-0000-0000-000000000000")
        high = UUID("f0000000-0000-0000-0000-000000000000")

        assert rank_totals({high: 50, low: 50}, 10) == [(low, 50), (high, 50)]

    def test_truncated_to_limit(self):
        totals = {UUID(int=i): i for i in range(1, 6)}

        assert [p for _, p in rank_totals(totals, 2)] == [5, 4]


class TestClampLimit:
    @pytest.mark.parametrize(
        ("limit", "expected"),
        [(None, 10), (0, 1), (-3, 1), (5, 5), (1000, 100)],
    )
    def test_clamp(self, services, limit, expected):
        assert make_service(services).clamp_limit(limit) == expected


class TestGetLeaderboard:
    """Tests for get_leaderboard against the in-memory store."""

    @pytest.mark.asyncio
    async def test_entries_carry_profile_and_rank(self, services, store):
        ana = store.add_user(name="Ana", streak=3)
        bo = store.add_user(name="Bo")
        store.points[ana] = 120
        store.points[bo] = 40

        entries = await make_service(services).get_leaderboard(10)

        assert [(e.rank, e.name, e.points) for e in entries] == [(1, "Ana", 120), (2, "Bo", 40)]
        assert entries[0].streak == 3
        assert entries[0].courses_completed == 0

    @pytest.mark.asyncio
    async def test_users_without_points_rank_at_zero(self, services, store):
        low = UUID("10000000-0000-0000-0000-000000000000")
        high = UUID("f0000000-0000-0000-0000-000000000000")
        store.add_user(name="High", user_id=high)
        store.add_user(name="Low", user_id=low)

        entries = await make_service(services).get_leaderboard()

        assert [(e.rank, e.name, e.points) for e in entries] == [(1, "Low", 0), (2, "High", 0)]

    @pytest.mark.asyncio
    async def test_scored_users_rank_above_new_ones(self, services, store):
        store.add_user(name="New")
        veteran = store.add_user(name="Veteran")
        store.points[veteran] = 5

        entries = await make_service(services).get_leaderboard()

        assert [(e.name, e.points) for e in entries] == [("Veteran", 5), ("New", 0)]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_ledger(self, services, store):
        ana = store.add_user(name="Ana")
        store.points[ana] = 10
        cached = orjson.dumps(
            [
                {
                    "rank": 1,
                    "user_id": "cached",
                    "name": "From Cache",
                    "image_url": None,
                    "points": 999,
                    "streak": 0,
                    "courses_completed": 0,
                }
            ]
        )
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=cached)

        entries = await make_service(services, redis=redis, ttl=30).get_leaderboard(10)

        assert entries[0].name == "From Cache"
        assert store.count("FROM test_ks.user_points") == 0

    @pytest.mark.asyncio
    async def test_cache_miss_is_written_with_ttl(self, services, store):
        ana = store.add_user(name="Ana")
        store.points[ana] = 10
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)

        await make_service(services, redis=redis, ttl=30).get_leaderboard(5)

        redis.set.assert_awaited_once()
        assert redis.set.await_args.kwargs["ex"] == 30

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back(self, services, store):
        ana = store.add_user(name="Ana")
        store.points[ana] = 10
        redis = AsyncMock()
        redis.get = AsyncMock(side_effect=RedisConnectionError("down"))
        redis.set = AsyncMock(side_effect=RedisConnectionError("down"))

        entries = await make_service(services, redis=redis, ttl=30).get_leaderboard()

        assert [e.points for e in entries] == [10]
