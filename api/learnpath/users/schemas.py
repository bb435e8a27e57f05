"""Pydantic schemas for the user mirror."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import User


class UserResponse(BaseModel):
    """Local user profile."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    external_id: str
    email: str | None = None
    name: str
    image_url: str | None = None
    streak: int
    points: int = 0
    last_active_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: User, points: int = 0) -> "UserResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            external_id=entity.external_id,
            email=entity.email,
            name=entity.name,
            image_url=entity.image_url,
            streak=entity.streak,
            points=points,
            last_active_at=entity.last_active_at,
            created_at=entity.created_at,
        )
