"""Points API endpoints."""

from fastapi import APIRouter

from learnpath.auth.dependencies import CurrentUser

from .dependencies import PointsLedgerDep
from .schemas import PointsResponse


router = APIRouter(prefix="/v1/points", tags=["points"])


@router.get("/me", response_model=PointsResponse, summary="Get my points")
async def get_my_points(
    points_ledger: PointsLedgerDep,
    user: CurrentUser,
) -> PointsResponse:
    """Return the caller's points total."""
    points = await points_ledger.get_points(user.user_id)
    return PointsResponse(user_id=user.user_id, points=points)
