"""Progress tracking API endpoints.

Provides routes for:
- Lesson progress reports
- Course completion queries and time reconciliation
- Course enrollment
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import ProgressServiceDep
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonProgressResponse,
    RecordLessonProgressRequest,
    ReconcileResponse,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.post(
    "/lessons/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Report lesson progress",
)
async def record_lesson_progress(
    lesson_id: UUID,
    data: RecordLessonProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonProgressResponse:
    """Record time spent, resume position and completion for a lesson.

    Safe to resend: completion is never lost and the enrollment is created
    on the first report. Completing a lesson triggers achievement evaluation.
    """
    try:
        progress = await progress_service.record_lesson_progress(
            user_id=user.user_id,
            lesson_id=lesson_id,
            is_completed=data.is_completed,
            time_spent_delta_seconds=data.time_spent_delta_seconds,
            last_position_seconds=data.last_position_seconds,
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return LessonProgressResponse.from_entity(progress)


@router.get(
    "/lessons/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Get lesson progress",
)
async def get_lesson_progress(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonProgressResponse:
    """Get progress for a specific lesson (used on lesson load to resume)."""
    try:
        progress = await progress_service.get_lesson_progress(user.user_id, lesson_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No progress recorded for this lesson",
        )
    return LessonProgressResponse.from_entity(progress)


# ==============================================================================
# Course Progress Endpoints
# ==============================================================================


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Get completion percentage, lesson counts and time spent for a course.

    Returns 0% for courses the user is not enrolled in.
    """
    result = await progress_service.get_course_progress(user.user_id, course_id)
    return CourseProgressResponse.from_entity(result)


@router.post(
    "/courses/{course_id}/reconcile",
    response_model=ReconcileResponse,
    summary="Reconcile enrollment time",
)
async def reconcile_enrollment_time(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ReconcileResponse:
    """Recompute the enrollment's lesson minutes from lesson progress."""
    try:
        await progress_service.require_enrollment(user.user_id, course_id)
        added = await progress_service.reconcile_enrollment_time(user.user_id, course_id)
        enrollment = await progress_service.require_enrollment(user.user_id, course_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return ReconcileResponse(
        course_id=course_id,
        minutes_added=added,
        total_time_spent=enrollment.total_time_spent,
    )


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll current user in a course."""
    try:
        enrollment = await progress_service.enroll_user(
            user_id=user.user_id,
            course_id=data.course_id,
        )
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get all course enrollments for current user."""
    enrollments = await progress_service.get_user_enrollments(user.user_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@enrollments_router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment for course",
)
async def get_enrollment(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Get enrollment status for a specific course."""
    try:
        enrollment = await progress_service.require_enrollment(user.user_id, course_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)
