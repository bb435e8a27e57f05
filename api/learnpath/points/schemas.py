"""Pydantic schemas for the points ledger."""

from uuid import UUID

from pydantic import BaseModel


class PointsResponse(BaseModel):
    """Current points total."""

    user_id: UUID
    points: int
