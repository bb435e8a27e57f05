"""Certificate issuance.

Gate: every lesson of a non-empty course completed. Issuance is
create-or-fetch, so repeated and concurrent requests for the same
(user, course) all return the same certificate.
"""

import secrets
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import utc_now
from learnpath.core.exceptions import CourseNotCompleteError, NotFoundError

from .models import Certificate


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.achievements.service import AchievementService
    from learnpath.catalog.service import CatalogService
    from learnpath.progress.service import ProgressService

logger = structlog.get_logger(__name__)

CERTIFICATE_NUMBER_BYTES = 4


class CertificateNotFoundError(NotFoundError):
    """Certificate not found."""

    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


def generate_certificate_number(prefix: str) -> str:
    """Random human-readable number, e.g. ``CERT-3F9A01BC``."""
    return f"{prefix}-{secrets.token_hex(CERTIFICATE_NUMBER_BYTES).upper()}"


class CertificateService:
    """Service for completion certificates."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog_service: "CatalogService",
        progress_service: "ProgressService",
        achievement_service: "AchievementService",
        number_prefix: str = "CERT",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.catalog_service = catalog_service
        self.progress_service = progress_service
        self.achievement_service = achievement_service
        self.number_prefix = number_prefix
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (user_id, course_id, certificate_id, certificate_number,
             completion_date, issue_date)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_certificate_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_id
            (certificate_id, user_id, course_id, certificate_number,
             completion_date, issue_date)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_certificates = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates WHERE user_id = ?
        """)

        self._get_certificate_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_id WHERE certificate_id = ?
        """)

    async def get_user_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        """Certificate for (user, course), if issued."""
        result = await self.session.aexecute(self._get_certificate, [user_id, course_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def issue_certificate_if_eligible(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate:
        """Issue the course certificate, or return the one already issued.

        Raises:
            CourseNotFoundError: If the course does not exist
            CourseNotCompleteError: If some lesson is not completed or the
                course has no lessons
        """
        existing = await self.get_user_course_certificate(user_id, course_id)
        if existing:
            await self._index_certificate(existing)
            return existing

        await self.catalog_service.require_course(course_id)
        progress = await self.progress_service.get_course_progress(user_id, course_id)
        if not progress.is_complete:
            raise CourseNotCompleteError(
                f"Course not completed: {progress.completed_lessons} of "
                f"{progress.total_lessons} lessons done"
            )

        now = utc_now()
        certificate = Certificate(
            certificate_id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            certificate_number=generate_certificate_number(self.number_prefix),
            completion_date=now,
            issue_date=now,
        )
        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.user_id,
                certificate.course_id,
                certificate.certificate_id,
                certificate.certificate_number,
                certificate.completion_date,
                certificate.issue_date,
            ],
        )
        if not result.was_applied:
            # A concurrent request issued first
            winner = await self.get_user_course_certificate(user_id, course_id)
            if winner is None:
                raise CertificateNotFoundError
            await self._index_certificate(winner)
            return winner

        await self._index_certificate(certificate)
        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            certificate_number=certificate.certificate_number,
        )

        await self.achievement_service.evaluate_and_unlock(user_id)
        return certificate

    async def _index_certificate(self, certificate: Certificate) -> None:
        """Upsert the by-id lookup row.

        Plain insert, safe to repeat. Every issuance path calls it, which
        restores a lookup row lost to a failed write.
        """
        await self.session.aexecute(
            self._insert_certificate_by_id,
            [
                certificate.certificate_id,
                certificate.user_id,
                certificate.course_id,
                certificate.certificate_number,
                certificate.completion_date,
                certificate.issue_date,
            ],
        )

    async def get_certificate(self, certificate_id: UUID) -> Certificate:
        """Get certificate by id.

        Raises:
            CertificateNotFoundError: If no such certificate exists
        """
        result = await self.session.aexecute(self._get_certificate_by_id, [certificate_id])
        row = result.one()
        if not row:
            raise CertificateNotFoundError
        return Certificate.from_row(row)

    async def list_user_certificates(self, user_id: UUID) -> list[Certificate]:
        """All certificates of a user."""
        rows = await self.session.aexecute(self._get_user_certificates, [user_id])
        return [Certificate.from_row(row) for row in rows]
