"""Database models for locally mirrored users.

The identity provider owns accounts; the ledger keeps a mirror keyed by an
internal UUID plus a lookup from the provider's stable external id.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware, utc_now


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    external_id TEXT,
    email TEXT,
    name TEXT,
    image_url TEXT,
    streak INT,
    last_active_at TIMESTAMP,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Lookup: provider id -> local id. Conditional inserts here make the first
# sync of an identity converge on a single local user.
USERS_BY_EXTERNAL_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users_by_external_id (
    external_id TEXT PRIMARY KEY,
    user_id UUID
)
"""

USERS_TABLES_CQL = [
    USERS_TABLE_CQL,
    USERS_BY_EXTERNAL_ID_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class User:
    """Local mirror of an identity provider account.

    Attributes:
        user_id: Internal UUID
        external_id: Stable id supplied by the identity provider
        email: Email address
        name: Display name
        image_url: Avatar URL
        streak: Consecutive active days (>= 0)
        last_active_at: Last learning activity (drives the streak)
        created_at: First sync timestamp
        updated_at: Last sync timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        external_id: str,
        email: str | None = None,
        name: str = "",
        image_url: str | None = None,
        streak: int = 0,
        last_active_at: datetime | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.external_id = external_id
        self.email = email
        self.name = name
        self.image_url = image_url
        self.streak = streak
        self.last_active_at = ensure_utc_aware(last_active_at)
        self.created_at = ensure_utc_aware(created_at) or utc_now()
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            external_id=row.external_id,
            email=row.email,
            name=row.name or "",
            image_url=row.image_url,
            streak=row.streak or 0,
            last_active_at=row.last_active_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.user_id} external={self.external_id} streak={self.streak}>"


def display_name(name: str | None, email: str | None) -> str:
    """Pick a display name: explicit name, else the email local part, else 'User'."""
    if name and name.strip():
        return name.strip()
    if email:
        return email.split("@")[0]
    return "User"
