"""Certificate API endpoints."""

from uuid import UUID

from fastapi import APIRouter

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import CertificateServiceDep
from .schemas import CertificateListResponse, CertificateResponse, IssueCertificateRequest


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.post("", response_model=CertificateResponse, summary="Issue certificate")
async def issue_certificate(
    data: IssueCertificateRequest,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Issue the certificate for a fully completed course.

    Repeating the request returns the same certificate.
    """
    try:
        certificate = await certificate_service.issue_certificate_if_eligible(
            user.user_id, data.course_id
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return CertificateResponse.from_entity(certificate)


@router.get("", response_model=CertificateListResponse, summary="List my certificates")
async def list_certificates(
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateListResponse:
    """All certificates of the caller."""
    certificates = await certificate_service.list_user_certificates(user.user_id)
    return CertificateListResponse(
        items=[CertificateResponse.from_entity(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/{certificate_id}",
    response_model=CertificateResponse,
    summary="Get certificate",
)
async def get_certificate(
    certificate_id: UUID,
    certificate_service: CertificateServiceDep,
    _user: CurrentUser,
) -> CertificateResponse:
    """Get a certificate by id (for verification)."""
    try:
        certificate = await certificate_service.get_certificate(certificate_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return CertificateResponse.from_entity(certificate)
