"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Identity claims from the bearer token
- The current local user (requires a prior sync)
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from learnpath.core.context import set_user_id
from learnpath.users.dependencies import UserServiceDep
from learnpath.users.models import User

from .schemas import IdentityClaims
from .security import decode_identity_token


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: FastAPI request

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_identity(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> IdentityClaims:
    """Verify the bearer token and return its identity claims.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_identity_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return IdentityClaims(
        external_id=str(payload["sub"]),
        email=payload.get("email"),
        name=payload.get("name"),
        image_url=payload.get("picture") or payload.get("image_url"),
    )


async def get_current_user(
    identity: Annotated[IdentityClaims, Depends(get_identity)],
    user_service: UserServiceDep,
) -> User:
    """Resolve the verified identity to its local user.

    Raises:
        HTTPException(403): If the identity was never synced
    """
    user = await user_service.get_user_by_external_id(identity.external_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not synced. Call /v1/users/sync first",
        )

    # Set user_id in context for logging
    set_user_id(str(user.user_id))
    return user


# Type aliases for dependency injection
Identity = Annotated[IdentityClaims, Depends(get_identity)]
CurrentUser = Annotated[User, Depends(get_current_user)]
