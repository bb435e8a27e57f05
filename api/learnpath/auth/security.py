"""Identity provider token verification."""

from typing import Any

from jose import JWTError, jwt

from learnpath.config.settings import get_settings


def decode_identity_token(token: str) -> dict[str, Any]:
    """Decode and validate a bearer token issued by the identity provider.

    Validates:
    - JWT signature
    - Expiration time
    - Audience and issuer, when configured
    - Presence of a subject

    Args:
        token: JWT string

    Returns:
        Decoded payload dictionary

    Raises:
        JWTError: If token is invalid, expired or has no subject
    """
    settings = get_settings()

    options = {"verify_aud": settings.identity_jwt_audience is not None}
    payload = jwt.decode(
        token,
        settings.identity_jwt_secret,
        algorithms=[settings.identity_jwt_algorithm],
        audience=settings.identity_jwt_audience,
        issuer=settings.identity_jwt_issuer,
        options=options,
    )

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise JWTError(msg)

    return payload
