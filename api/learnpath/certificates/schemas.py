"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import Certificate


class IssueCertificateRequest(BaseModel):
    """Request a certificate for a completed course."""

    course_id: UUID = Field(..., description="Course UUID")


class CertificateResponse(BaseModel):
    """Issued certificate."""

    certificate_id: UUID
    user_id: UUID
    course_id: UUID
    certificate_number: str
    completion_date: datetime
    issue_date: datetime

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        """Create response from entity."""
        return cls(
            certificate_id=entity.certificate_id,
            user_id=entity.user_id,
            course_id=entity.course_id,
            certificate_number=entity.certificate_number,
            completion_date=entity.completion_date,
            issue_date=entity.issue_date,
        )


class CertificateListResponse(BaseModel):
    """Certificates of the current user."""

    items: list[CertificateResponse]
    total: int
