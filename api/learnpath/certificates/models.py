"""Database models for completion certificates.

Tables:
- certificates: one row per (user, course); the conditional insert here is
  the uniqueness constraint that makes issuance create-or-fetch
- certificates_by_id: lookup for verification by certificate id
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware


CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    user_id UUID,
    course_id UUID,
    certificate_id UUID,
    certificate_number TEXT,
    completion_date TIMESTAMP,
    issue_date TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

CERTIFICATES_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_id (
    certificate_id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    certificate_number TEXT,
    completion_date TIMESTAMP,
    issue_date TIMESTAMP
)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_ID_TABLE_CQL,
]


class Certificate:
    """Proof of course completion, issued once per (user, course)."""

    def __init__(
        self,
        certificate_id: UUID,
        user_id: UUID,
        course_id: UUID,
        certificate_number: str,
        completion_date: datetime,
        issue_date: datetime,
    ):
        self.certificate_id = certificate_id
        self.user_id = user_id
        self.course_id = course_id
        self.certificate_number = certificate_number
        self.completion_date = ensure_utc_aware(completion_date)
        self.issue_date = ensure_utc_aware(issue_date)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            certificate_id=row.certificate_id,
            user_id=row.user_id,
            course_id=row.course_id,
            certificate_number=row.certificate_number,
            completion_date=row.completion_date,
            issue_date=row.issue_date,
        )

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number} user={self.user_id} course={self.course_id}>"
