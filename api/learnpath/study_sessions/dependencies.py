"""FastAPI dependencies for study sessions."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import StudySessionService


async def get_study_session_service(request: Request) -> StudySessionService:
    """Get study session service from app state."""
    app_state = request.app.state
    if (
        not hasattr(app_state, "study_session_service")
        or not app_state.study_session_service
    ):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Study session service not available",
        )
    return app_state.study_session_service


StudySessionServiceDep = Annotated[
    StudySessionService, Depends(get_study_session_service)
]
