"""Quiz API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import QuizServiceDep
from .schemas import (
    AttemptListResponse,
    AttemptResponse,
    AttemptSummary,
    FeedbackResponse,
    QuizResponse,
    SubmitAttemptRequest,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.get(
    "/{quiz_id}",
    response_model=QuizResponse,
    summary="Get quiz",
)
async def get_quiz(
    quiz_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizResponse:
    """Get a quiz without correct answers, plus the caller's attempts."""
    try:
        quiz = await quiz_service.get_quiz(quiz_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    attempts = await quiz_service.list_attempts(user.user_id, quiz_id)
    return QuizResponse.from_entity(quiz, attempts)


@router.post(
    "/{quiz_id}/attempts",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz attempt",
)
async def submit_attempt(
    quiz_id: UUID,
    data: SubmitAttemptRequest,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> AttemptResponse:
    """Score answers and record a new attempt.

    Each submission is kept. Passing awards 20 points, plus 10 for a
    perfect score.
    """
    try:
        outcome = await quiz_service.submit_attempt(
            user_id=user.user_id,
            quiz_id=quiz_id,
            answers=data.answers,
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    result = outcome.result
    return AttemptResponse(
        attempt=AttemptSummary.from_entity(outcome.attempt),
        score=result.score,
        is_passed=result.is_passed,
        correct_count=result.correct_count,
        total_questions=result.total_questions,
        points_earned=result.points_earned,
        feedback=[FeedbackResponse.from_feedback(f) for f in result.feedback],
    )


@router.get(
    "/{quiz_id}/attempts",
    response_model=AttemptListResponse,
    summary="List my attempts",
)
async def list_attempts(
    quiz_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> AttemptListResponse:
    """Attempt history for the caller, newest first."""
    attempts = await quiz_service.list_attempts(user.user_id, quiz_id)
    return AttemptListResponse(
        items=[AttemptSummary.from_entity(a) for a in attempts],
        total=len(attempts),
    )
