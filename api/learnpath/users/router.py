"""User mirror API endpoints."""

from fastapi import APIRouter

from learnpath.auth.dependencies import CurrentUser, Identity
from learnpath.points.dependencies import PointsLedgerDep

from .dependencies import UserServiceDep
from .schemas import UserResponse


router = APIRouter(prefix="/v1/users", tags=["users"])


@router.post(
    "/sync",
    response_model=UserResponse,
    summary="Sync identity into local user",
)
async def sync_user(
    identity: Identity,
    user_service: UserServiceDep,
) -> UserResponse:
    """Create or refresh the local user for the calling identity.

    Safe to call on every sign-in; concurrent first syncs converge on one user.
    """
    user = await user_service.sync_user(
        external_id=identity.external_id,
        email=identity.email,
        name=identity.name,
        image_url=identity.image_url,
    )
    return UserResponse.from_entity(user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get my profile",
)
async def get_me(user: CurrentUser, points_ledger: PointsLedgerDep) -> UserResponse:
    """Return the caller's local profile with points total and streak."""
    points = await points_ledger.get_points(user.user_id)
    return UserResponse.from_entity(user, points)
