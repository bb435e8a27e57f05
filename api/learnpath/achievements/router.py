"""Achievement API endpoints."""

from fastapi import APIRouter

from learnpath.auth.dependencies import CurrentUser
from learnpath.core.exceptions import LedgerError, handle_ledger_error

from .dependencies import AchievementServiceDep
from .schemas import (
    AchievementProgress,
    AchievementResponse,
    AchievementsResponse,
    EvaluateResponse,
)


router = APIRouter(prefix="/v1/achievements", tags=["achievements"])


@router.get("", response_model=AchievementsResponse, summary="Get my achievements")
async def get_achievements(
    achievement_service: AchievementServiceDep,
    user: CurrentUser,
) -> AchievementsResponse:
    """Unlocked and locked achievements with progress counters."""
    try:
        overview = await achievement_service.get_achievements(user.user_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return AchievementsResponse(
        unlocked=[
            AchievementResponse.from_definition(a, unlock.unlocked_at)
            for a, unlock in overview.unlocked
        ],
        locked=[AchievementResponse.from_definition(a) for a in overview.locked],
        progress=AchievementProgress.from_facts(overview.facts),
    )


@router.post("/evaluate", response_model=EvaluateResponse, summary="Evaluate achievements")
async def evaluate_achievements(
    achievement_service: AchievementServiceDep,
    user: CurrentUser,
) -> EvaluateResponse:
    """Unlock any satisfied achievements. Repeating the call awards nothing new."""
    try:
        unlocked = await achievement_service.evaluate_and_unlock(user.user_id)
    except LedgerError as e:
        raise handle_ledger_error(e) from e

    return EvaluateResponse(
        newly_unlocked=[AchievementResponse.from_definition(a) for a in unlocked]
    )
