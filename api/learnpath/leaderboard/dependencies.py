"""FastAPI dependencies for the leaderboard."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import LeaderboardService


async def get_leaderboard_service(request: Request) -> LeaderboardService:
    """Get leaderboard service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "leaderboard_service") or not app_state.leaderboard_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Leaderboard service not available",
        )
    return app_state.leaderboard_service


LeaderboardServiceDep = Annotated[LeaderboardService, Depends(get_leaderboard_service)]
