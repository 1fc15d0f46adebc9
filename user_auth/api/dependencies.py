"""FastAPI dependencies for service wiring and identity resolution."""

from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from user_auth.config import get_settings
from user_auth.services.session_service import SessionService
from user_auth.services.token_service import TokenService
from user_auth.services.user_repository import UserRepository

bearer_scheme = HTTPBearer()


@lru_cache
def get_token_service() -> TokenService:
    """Build the process-wide token service from settings.

    Raises:
        ConfigurationError: If the JWT secret is missing
    """
    settings = get_settings()
    return TokenService(settings.jwt_settings(), UserRepository())


def get_session_service(
    token_service: TokenService = Depends(get_token_service),
) -> SessionService:
    return SessionService(
        user_repository=token_service.user_repository,
        token_service=token_service,
    )


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
) -> UUID:
    """Resolve the authenticated user id from a JWT Bearer token.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        The token subject as a UUID

    Raises:
        HTTPException 401: If the token is invalid, expired, or has no usable subject
    """
    try:
        payload = token_service.validate_access_token(credentials.credentials)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
