"""Authentication dependencies for FastAPI routes."""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sugarop.core.jwt import JWTVerifier
from sugarop.schemas.auth import CurrentUser
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_jwt_verifier(request: Request) -> JWTVerifier:
    return request.app.state.jwt_verifier


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: JWTVerifier = Depends(get_jwt_verifier),
) -> CurrentUser:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Authorization credentials (automatically injected)
        verifier: JWT verifier held on application state

    Returns:
        CurrentUser: Authenticated user information

    Raises:
        HTTPException: If token is missing, invalid, or expired
    """
    if not credentials:
        LOGGER.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Please login to upload receipts",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = await verifier.verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = CurrentUser(id=claims.sub, email=claims.email, role=claims.role or "authenticated")
    LOGGER.debug(f"Authenticated user: {user.id}")
    return user
