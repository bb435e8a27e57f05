"""Error taxonomy shared by all ledger services.

Every failure surfaces to the caller with a specific kind. Feature modules
subclass these to refine the ``code`` and default message.
"""

from fastapi import HTTPException, status


class LedgerError(Exception):
    """Base ledger error."""

    def __init__(self, message: str, code: str = "ledger_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(LedgerError):
    """A referenced user, course, lesson, quiz, session or certificate is missing."""

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(message, code)


class UnauthorizedError(LedgerError):
    """The actor lacks rights over the target."""

    def __init__(
        self,
        message: str = "Not allowed to act on this resource",
        code: str = "unauthorized",
    ):
        super().__init__(message, code)


class ConflictError(LedgerError):
    """The operation contradicts the current state of the target."""

    def __init__(self, message: str = "Conflicting state", code: str = "conflict"):
        super().__init__(message, code)


class CourseNotCompleteError(LedgerError):
    """Certificate gate failure."""

    def __init__(self, message: str = "Course not completed"):
        super().__init__(message, "course_not_complete")


class ValidationError(LedgerError):
    """Malformed input (negative time deltas, bad answer maps, negative points)."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, "validation_error")


_STATUS_BY_KIND: list[tuple[type[LedgerError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (CourseNotCompleteError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
]


def handle_ledger_error(error: LedgerError) -> HTTPException:
    """Convert ledger errors to HTTP exceptions.

    Args:
        error: Ledger error

    Returns:
        HTTPException with appropriate status code
    """
    status_code = next(
        (code for kind, code in _STATUS_BY_KIND if isinstance(error, kind)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return HTTPException(status_code=status_code, detail=error.message)
