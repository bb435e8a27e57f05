"""Pydantic schemas for the leaderboard."""

from pydantic import BaseModel


class LeaderboardUser(BaseModel):
    """Public user fields shown on the leaderboard."""

    user_id: str
    name: str
    image_url: str | None = None


class LeaderboardEntryResponse(BaseModel):
    """One ranked user."""

    rank: int
    user: LeaderboardUser
    points: int
    streak: int
    courses_completed: int


class LeaderboardResponse(BaseModel):
    """Ranked page."""

    leaderboard: list[LeaderboardEntryResponse]
