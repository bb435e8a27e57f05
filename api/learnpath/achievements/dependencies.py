"""FastAPI dependencies for achievements."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AchievementService


async def get_achievement_service(request: Request) -> AchievementService:
    """Get achievement service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "achievement_service") or not app_state.achievement_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Achievement service not available",
        )
    return app_state.achievement_service


AchievementServiceDep = Annotated[AchievementService, Depends(get_achievement_service)]
