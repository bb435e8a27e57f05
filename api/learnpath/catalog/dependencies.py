"""FastAPI dependencies for the catalog."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CatalogService


async def get_catalog_service(request: Request) -> CatalogService:
    """Get catalog service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "catalog_service") or not app_state.catalog_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return app_state.catalog_service


CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]
