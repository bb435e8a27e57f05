"""User mirror service.

Business logic for:
- Syncing identity provider accounts into local users
- Daily activity streaks
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import ensure_utc_aware, utc_now
from learnpath.core.exceptions import NotFoundError

from .models import User, display_name


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

# Compare-and-set attempts before giving up on a contended streak update
STREAK_UPDATE_ATTEMPTS = 3


class UserNotFoundError(NotFoundError):
    """User not mirrored locally."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


def next_streak(current: int, last_active_at: datetime | None, now: datetime) -> int | None:
    """Compute the streak after activity at ``now``.

    Days are UTC calendar days. Returns None when the streak does not change
    (activity already recorded today).
    """
    today = now.date()
    if last_active_at is None:
        return 1
    last_day = ensure_utc_aware(last_active_at).date()
    if last_day >= today:
        return None
    if last_day == today - timedelta(days=1):
        return current + 1
    return 1


class UserService:
    """Service for the local user mirror."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users WHERE user_id = ?
        """)

        self._list_users = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users
        """)

        self._get_user_id_by_external = self.session.prepare(f"""
            SELECT user_id FROM {self.keyspace}.users_by_external_id
            WHERE external_id = ?
        """)

        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users
            (user_id, external_id, email, name, image_url, streak,
             last_active_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.users WHERE user_id = ?
        """)

        self._claim_external_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users_by_external_id (external_id, user_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)

        self._update_profile = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET email = ?, name = ?, image_url = ?, updated_at = ?
            WHERE user_id = ?
            IF EXISTS
        """)

        self._update_streak = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET streak = ?, last_active_at = ?
            WHERE user_id = ?
            IF streak = ?
        """)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_user(self, user_id: UUID) -> User | None:
        """Get user by internal id."""
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def require_user(self, user_id: UUID) -> User:
        """Get user by internal id.

        Raises:
            UserNotFoundError: If the user is not mirrored locally
        """
        user = await self.get_user(user_id)
        if user is None:
            raise UserNotFoundError
        return user

    async def list_users(self) -> dict[UUID, User]:
        """Every mirrored user, keyed by id."""
        rows = await self.session.aexecute(self._list_users)
        users = [User.from_row(row) for row in rows]
        return {user.user_id: user for user in users}

    async def get_user_by_external_id(self, external_id: str) -> User | None:
        """Resolve an identity provider id to the local user."""
        result = await self.session.aexecute(
            self._get_user_id_by_external, [external_id]
        )
        row = result.one()
        if not row:
            return None
        return await self.get_user(row.user_id)

    # ==========================================================================
    # Sync
    # ==========================================================================

    async def sync_user(
        self,
        external_id: str,
        email: str | None = None,
        name: str | None = None,
        image_url: str | None = None,
    ) -> User:
        """Create or refresh the local mirror of an identity.

        The users row is written before the external id is claimed, so a
        claimed id always points at an existing row. A request that loses the
        claim race deletes its orphan row and returns the winner.
        """
        now = utc_now()
        resolved_name = display_name(name, email)

        existing = await self.get_user_by_external_id(external_id)
        if existing:
            await self.session.aexecute(
                self._update_profile,
                [email, resolved_name, image_url, now, existing.user_id],
            )
            existing.email = email
            existing.name = resolved_name
            existing.image_url = image_url
            existing.updated_at = now
            return existing

        user = User(
            user_id=uuid4(),
            external_id=external_id,
            email=email,
            name=resolved_name,
            image_url=image_url,
            streak=0,
            created_at=now,
            updated_at=now,
        )
        await self.session.aexecute(
            self._insert_user,
            [
                user.user_id,
                user.external_id,
                user.email,
                user.name,
                user.image_url,
                user.streak,
                user.last_active_at,
                user.created_at,
                user.updated_at,
            ],
        )

        claim = await self.session.aexecute(
            self._claim_external_id, [external_id, user.user_id]
        )
        if not claim.was_applied:
            await self.session.aexecute(self._delete_user, [user.user_id])
            winner = await self.get_user_by_external_id(external_id)
            if winner is None:
                raise UserNotFoundError
            logger.info(
                "user_sync_race_resolved",
                external_id=external_id,
                user_id=str(winner.user_id),
            )
            return winner

        logger.info(
            "user_created",
            user_id=str(user.user_id),
            external_id=external_id,
        )
        return user

    # ==========================================================================
    # Streaks
    # ==========================================================================

    async def record_activity(self, user_id: UUID, at: datetime | None = None) -> int:
        """Register learning activity and return the resulting streak.

        The write is conditional on the streak value that was read, so two
        devices reporting activity at once cannot both increment it.
        """
        now = at or utc_now()

        for _ in range(STREAK_UPDATE_ATTEMPTS):
            user = await self.require_user(user_id)
            new_streak = next_streak(user.streak, user.last_active_at, now)
            if new_streak is None:
                return user.streak

            result = await self.session.aexecute(
                self._update_streak, [new_streak, now, user_id, user.streak]
            )
            if result.was_applied:
                if new_streak != user.streak + 1:
                    logger.info("streak_reset", user_id=str(user_id))
                return new_streak

        logger.warning("streak_update_contended", user_id=str(user_id))
        user = await self.require_user(user_id)
        return user.streak
