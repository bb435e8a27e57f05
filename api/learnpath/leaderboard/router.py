"""Leaderboard API endpoints."""

from fastapi import APIRouter, Query

from .dependencies import LeaderboardServiceDep
from .schemas import LeaderboardEntryResponse, LeaderboardResponse, LeaderboardUser


router = APIRouter(prefix="/v1/leaderboard", tags=["leaderboard"])


@router.get("", response_model=LeaderboardResponse, summary="Get leaderboard")
async def get_leaderboard(
    leaderboard_service: LeaderboardServiceDep,
    limit: int | None = Query(None, description="Page size (clamped to server maximum)"),
) -> LeaderboardResponse:
    """Top users by points. Ties are ordered by user id."""
    entries = await leaderboard_service.get_leaderboard(limit)
    return LeaderboardResponse(
        leaderboard=[
            LeaderboardEntryResponse(
                rank=e.rank,
                user=LeaderboardUser(user_id=e.user_id, name=e.name, image_url=e.image_url),
                points=e.points,
                streak=e.streak,
                courses_completed=e.courses_completed,
            )
            for e in entries
        ]
    )
