"""FastAPI dependencies for the points ledger."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import PointsLedger


async def get_points_ledger(request: Request) -> PointsLedger:
    """Get points ledger from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "points_ledger") or not app_state.points_ledger:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Points ledger not available",
        )
    return app_state.points_ledger


PointsLedgerDep = Annotated[PointsLedger, Depends(get_points_ledger)]
