"""Points ledger service.

Totals only ever grow: there is no decrement path.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnpath.core.exceptions import ValidationError

from .models import POINTS_BUCKET


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class PointsLedger:
    """Atomic per-user points totals."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._increment = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_points
            SET points = points + ?
            WHERE bucket = ? AND user_id = ?
        """)

        self._get_points = self.session.prepare(f"""
            SELECT points FROM {self.keyspace}.user_points
            WHERE bucket = ? AND user_id = ?
        """)

        self._get_all_points = self.session.prepare(f"""
            SELECT user_id, points FROM {self.keyspace}.user_points
            WHERE bucket = ?
        """)

    async def award_points(self, user_id: UUID, amount: int, reason: str) -> None:
        """Add points to a user's total.

        A single increment relative to the stored value; the current total is
        never read first.

        Raises:
            ValidationError: If amount is negative
        """
        if amount < 0:
            raise ValidationError("Points amount must not be negative")
        if amount == 0:
            return

        await self.session.aexecute(self._increment, [amount, POINTS_BUCKET, user_id])
        logger.info(
            "points_awarded",
            user_id=str(user_id),
            amount=amount,
            reason=reason,
        )

    async def get_points(self, user_id: UUID) -> int:
        """Current total for a user (0 if never awarded)."""
        result = await self.session.aexecute(self._get_points, [POINTS_BUCKET, user_id])
        row = result.one()
        return (row.points or 0) if row else 0

    async def list_totals(self) -> dict[UUID, int]:
        """Stored totals keyed by user id; users never awarded are absent."""
        rows = await self.session.aexecute(self._get_all_points, [POINTS_BUCKET])
        return {row.user_id: row.points or 0 for row in rows}
