"""Authentication API endpoints."""

from typing import TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
import structlog

from user_auth.api.dependencies import get_current_identity, get_session_service
from user_auth.models.auth import (
    CurrentUserResponse,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RevokeRefreshTokenResponse,
    UpdateUserRequest,
    UserResponse,
)
from user_auth.models.result import ErrorKind, ServiceResult
from user_auth.services.session_service import SessionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/authentication", tags=["Authentication"])

T = TypeVar("T")

STATUS_BY_ERROR_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UPDATE_FAILED: status.HTTP_409_CONFLICT,
}


def _unwrap(result: ServiceResult[T]) -> T:
    """Return the result value or raise the matching HTTPException."""
    if result.ok:
        return result.value

    error = result.error
    headers = {"X-Error-Kind": error.kind.value}
    status_code = STATUS_BY_ERROR_KIND[error.kind]
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    raise HTTPException(status_code=status_code, detail=error.message, headers=headers)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    sessions: SessionService = Depends(get_session_service),
) -> UserResponse:
    """Register a new account.

    Raises:
        HTTPException 409: If the email is already registered
        HTTPException 400: If the password or record fails validation
    """
    return _unwrap(await sessions.register(request))


@router.post("/login")
async def login(
    request: LoginRequest,
    sessions: SessionService = Depends(get_session_service),
) -> UserResponse:
    """Login with email and password.

    Returns:
        UserResponse carrying an access token and a refresh token; the
        refresh token is shown only in this response

    Raises:
        HTTPException 401: If credentials are invalid
    """
    return _unwrap(await sessions.login(request))


# Anonymous: the refresh token is the credential, the access token has usually expired
@router.post("/refresh-token")
async def refresh_token(
    request: RefreshTokenRequest,
    sessions: SessionService = Depends(get_session_service),
) -> CurrentUserResponse:
    """Exchange a refresh token for a new access token.

    Raises:
        HTTPException 401: If the refresh token is unknown or expired
    """
    return _unwrap(await sessions.refresh_token(request.refresh_token))


@router.post("/revoke-refresh-token")
async def revoke_refresh_token(
    request: RefreshTokenRequest,
    sessions: SessionService = Depends(get_session_service),
    _identity: UUID = Depends(get_current_identity),
) -> RevokeRefreshTokenResponse:
    """Revoke a refresh token so it can no longer be exchanged."""
    return _unwrap(await sessions.revoke_refresh_token(request.refresh_token))


@router.get("/current-user")
async def current_user(
    identity: UUID = Depends(get_current_identity),
    sessions: SessionService = Depends(get_session_service),
) -> CurrentUserResponse:
    """Get the authenticated user's profile."""
    return _unwrap(await sessions.get_current_user(identity))


@router.get("/user/{user_id}")
async def get_user(
    user_id: UUID,
    sessions: SessionService = Depends(get_session_service),
    _identity: UUID = Depends(get_current_identity),
) -> UserResponse:
    return _unwrap(await sessions.get_by_id(user_id))


@router.put("/user/{user_id}")
async def update_user(
    user_id: UUID,
    request: UpdateUserRequest,
    sessions: SessionService = Depends(get_session_service),
    _identity: UUID = Depends(get_current_identity),
) -> UserResponse:
    """Update profile fields of a user.

    Raises:
        HTTPException 404: If the user does not exist
        HTTPException 409: If the new email belongs to another user
    """
    return _unwrap(await sessions.update(user_id, request))


@router.delete("/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    sessions: SessionService = Depends(get_session_service),
    identity: UUID = Depends(get_current_identity),
) -> Response:
    _unwrap(await sessions.delete(user_id))
    logger.info("user_deleted_via_api", user_id=str(user_id), deleted_by=str(identity))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
