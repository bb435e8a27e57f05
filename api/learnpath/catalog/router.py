"""Quiz ingestion endpoint for AI-generated question sets."""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import CatalogServiceDep
from .schemas import SaveGeneratedQuizRequest, SaveGeneratedQuizResponse


router = APIRouter(prefix="/v1/lessons", tags=["catalog"])


@router.post(
    "/{lesson_id}/quiz",
    response_model=SaveGeneratedQuizResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest generated quiz",
)
async def save_generated_quiz(
    lesson_id: UUID,
    data: SaveGeneratedQuizRequest,
    catalog_service: CatalogServiceDep,
    _user: CurrentUser,
) -> SaveGeneratedQuizResponse:
    """Store a generated question set as the lesson's quiz.

    Questions keep the order they are sent in.
    """
    try:
        quiz = await catalog_service.save_generated_quiz(
            lesson_id=lesson_id,
            passing_score=data.passing_score,
            questions=[q.model_dump() for q in data.questions],
            title=data.title,
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return SaveGeneratedQuizResponse(
        quiz_id=quiz.quiz_id,
        lesson_id=quiz.lesson_id,
        question_count=len(quiz.questions),
    )
