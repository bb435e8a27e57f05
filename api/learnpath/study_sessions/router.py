"""Study session API endpoints."""

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import StudySessionServiceDep
from .schemas import (
    EndSessionRequest,
    EndSessionResponse,
    StartSessionRequest,
    StudySessionListResponse,
    StudySessionResponse,
)


router = APIRouter(prefix="/v1/study-sessions", tags=["study-sessions"])


@router.post(
    "/start",
    response_model=StudySessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start study session",
)
async def start_session(
    data: StartSessionRequest,
    study_session_service: StudySessionServiceDep,
    user: CurrentUser,
) -> StudySessionResponse:
    """Open a new study session. Every call creates a new session."""
    try:
        study_session = await study_session_service.start_session(
            user_id=user.user_id,
            course_id=data.course_id,
            lesson_id=data.lesson_id,
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return StudySessionResponse.from_entity(study_session)


@router.post(
    "/end",
    response_model=EndSessionResponse,
    summary="End study session",
)
async def end_session(
    data: EndSessionRequest,
    study_session_service: StudySessionServiceDep,
    user: CurrentUser,
) -> EndSessionResponse:
    """Close a session and award one point per full minute studied.

    Ending an already ended session is a 409.
    """
    try:
        study_session = await study_session_service.end_session(
            data.session_id, user.user_id
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return EndSessionResponse(
        session=StudySessionResponse.from_entity(study_session),
        points_earned=study_session.points_earned,
    )


@router.get(
    "/active",
    response_model=StudySessionListResponse,
    summary="List my active sessions",
)
async def list_active_sessions(
    study_session_service: StudySessionServiceDep,
    user: CurrentUser,
) -> StudySessionListResponse:
    """Sessions the caller started and has not ended yet."""
    sessions = await study_session_service.list_active_sessions(user.user_id)
    return StudySessionListResponse(
        items=[StudySessionResponse.from_entity(s) for s in sessions],
        total=len(sessions),
    )
