"""Registration, login, and refresh-token session lifecycle."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from user_auth.models.auth import (
    CurrentUserResponse,
    LoginRequest,
    RegisterRequest,
    RevokeRefreshTokenResponse,
    UpdateUserRequest,
    UserResponse,
)
from user_auth.models.result import ErrorKind, ServiceResult
from user_auth.models.user import User
from user_auth.services.password_service import PasswordService
from user_auth.services.token_service import TokenService, hash_refresh_token
from user_auth.services.user_repository import UserRepository, UserValidationError

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
REFRESH_TOKEN_EXPIRED = "Refresh token expired"
USER_NOT_FOUND = "User not found"
EMAIL_EXISTS = "Email already exists"
REVOKE_SUCCEEDED = "Refresh token revoked successfully"
REVOKE_FAILED = "Failed to revoke refresh token"
SESSION_UPDATE_FAILED = "Failed to update user: session changed concurrently, please retry"


def _user_response(
    user: User,
    access_token: Optional[str] = None,
    refresh_token: Optional[str] = None,
) -> UserResponse:
    """Convert a User model to a UserResponse."""
    return UserResponse(
        id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        gender=user.gender,
        created_at=user.created_at,
        last_modified_at=user.updated_at,
        access_token=access_token,
        refresh_token=refresh_token,
    )


def _current_user_response(
    user: User, access_token: Optional[str] = None
) -> CurrentUserResponse:
    """Convert a User model to a CurrentUserResponse."""
    return CurrentUserResponse(
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        gender=user.gender,
        access_token=access_token,
        created_at=user.created_at,
        last_modified_at=user.updated_at,
    )


class SessionService:
    """Orchestrates account and session flows.

    Every operation persists its state change through the repository before
    returning; nothing is cached between calls. Expected failures come back
    as failed ServiceResults, while database errors propagate.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        token_service: TokenService,
        password_service: Optional[PasswordService] = None,
    ):
        self.user_repository = user_repository
        self.token_service = token_service
        self.password_service = password_service or user_repository.password_service

    async def generate_username(self, first_name: str, last_name: str) -> str:
        """Derive a username unused at the time of the call.

        Lowercased first+last name with non-alphanumerics removed; on
        collision a counter starting at 1 is appended.
        """
        combined = f"{first_name}{last_name}".lower()
        base = "".join(c for c in combined if c.isalnum()) or "user"

        username = base
        count = 1
        while await self.user_repository.username_exists(username):
            username = f"{base}{count}"
            count += 1
        return username

    async def register(self, request: RegisterRequest) -> ServiceResult[UserResponse]:
        """Create an account and return its summary with an access token."""
        if await self.user_repository.email_exists(request.email):
            logger.warning("register_email_exists")
            return ServiceResult.failure(ErrorKind.CONFLICT, EMAIL_EXISTS)

        username = await self.generate_username(request.first_name, request.last_name)

        try:
            user = await self.user_repository.create_user(
                email=request.email,
                username=username,
                password=request.password,
                first_name=request.first_name,
                last_name=request.last_name,
                gender=request.gender,
            )
        except UserValidationError as e:
            errors = ", ".join(e.errors)
            logger.warning("register_validation_failed", errors=e.errors)
            return ServiceResult.failure(
                ErrorKind.VALIDATION_FAILED, f"Failed to create user: {errors}"
            )

        access_token = await self.token_service.generate_token(user)
        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return ServiceResult.success(_user_response(user, access_token=access_token))

    async def login(self, request: LoginRequest) -> ServiceResult[UserResponse]:
        """Verify credentials and issue an access token plus a new refresh token.

        Unknown email and wrong password are reported identically. The new
        refresh token replaces whatever the user held before.
        """
        found = await self.user_repository.get_by_email(request.email)

        if found is None:
            # Same bcrypt cost as a wrong password so timing does not reveal the email
            self.password_service.verify_password(
                request.password, self.password_service.dummy_hash
            )
            logger.warning("login_failed", reason="unknown_email")
            return ServiceResult.failure(ErrorKind.AUTHENTICATION_FAILED, INVALID_CREDENTIALS)

        user, password_hash = found

        if not self.password_service.verify_password(request.password, password_hash):
            logger.warning("login_failed", reason="bad_password", user_id=str(user.id))
            return ServiceResult.failure(ErrorKind.AUTHENTICATION_FAILED, INVALID_CREDENTIALS)

        access_token = await self.token_service.generate_token(user)
        refresh_token = self.token_service.generate_refresh_token()
        token_hash = hash_refresh_token(refresh_token)
        now = datetime.now(timezone.utc)
        expires_at = now + self.token_service.refresh_token_lifetime

        swapped = await self.user_repository.swap_refresh_token(
            user.id,
            expected_hash=user.refresh_token_hash,
            new_hash=token_hash,
            expires_at=expires_at,
            updated_at=now,
        )
        if not swapped:
            return ServiceResult.failure(ErrorKind.UPDATE_FAILED, SESSION_UPDATE_FAILED)

        user = user.model_copy(
            update={
                "refresh_token_hash": token_hash,
                "refresh_token_expires_at": expires_at,
                "updated_at": now,
            }
        )

        logger.info(
            "user_logged_in",
            user_id=str(user.id),
            refresh_expires_at=expires_at.isoformat(),
        )
        return ServiceResult.success(
            _user_response(user, access_token=access_token, refresh_token=refresh_token)
        )

    async def _resolve_refresh_token(self, raw_token: str) -> ServiceResult[User]:
        """Find the user holding this refresh token and check its expiry."""
        token_hash = hash_refresh_token(raw_token)
        user = await self.user_repository.get_by_refresh_token_hash(token_hash)

        if user is None:
            logger.warning("refresh_token_not_found")
            return ServiceResult.failure(ErrorKind.AUTHENTICATION_FAILED, INVALID_REFRESH_TOKEN)

        now = datetime.now(timezone.utc)
        if user.refresh_token_expires_at is None or user.refresh_token_expires_at < now:
            logger.warning("refresh_token_expired", user_id=str(user.id))
            return ServiceResult.failure(ErrorKind.TOKEN_EXPIRED, REFRESH_TOKEN_EXPIRED)

        return ServiceResult.success(user)

    async def refresh_token(self, raw_token: str) -> ServiceResult[CurrentUserResponse]:
        """Exchange a valid refresh token for a new access token.

        The stored refresh token is left as is; it stays usable until it
        expires or is revoked.
        """
        resolved = await self._resolve_refresh_token(raw_token)
        if not resolved.ok:
            return ServiceResult(error=resolved.error)

        user = resolved.value
        access_token = await self.token_service.generate_token(user)
        logger.info("access_token_refreshed", user_id=str(user.id))
        return ServiceResult.success(_current_user_response(user, access_token=access_token))

    async def revoke_refresh_token(
        self, raw_token: str
    ) -> ServiceResult[RevokeRefreshTokenResponse]:
        """Clear the user's refresh-token slot if it still holds this token."""
        resolved = await self._resolve_refresh_token(raw_token)
        if not resolved.ok:
            return ServiceResult(error=resolved.error)

        user = resolved.value
        swapped = await self.user_repository.swap_refresh_token(
            user.id,
            expected_hash=user.refresh_token_hash,
            new_hash=None,
            expires_at=None,
        )
        if not swapped:
            logger.error("refresh_token_revoke_failed", user_id=str(user.id))
            return ServiceResult.failure(ErrorKind.UPDATE_FAILED, REVOKE_FAILED)

        logger.info("refresh_token_revoked", user_id=str(user.id))
        return ServiceResult.success(RevokeRefreshTokenResponse(message=REVOKE_SUCCEEDED))

    async def get_current_user(self, user_id: UUID) -> ServiceResult[CurrentUserResponse]:
        """Profile of the identity resolved from the request, without tokens."""
        user = await self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning("current_user_not_found", user_id=str(user_id))
            return ServiceResult.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return ServiceResult.success(_current_user_response(user))

    async def get_by_id(self, user_id: UUID) -> ServiceResult[UserResponse]:
        user = await self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning("user_not_found", user_id=str(user_id))
            return ServiceResult.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return ServiceResult.success(_user_response(user))

    async def update(
        self, user_id: UUID, request: UpdateUserRequest
    ) -> ServiceResult[UserResponse]:
        """Apply the supplied profile fields and bump last-modified-at."""
        if await self.user_repository.get_by_id(user_id) is None:
            logger.warning("user_not_found", user_id=str(user_id))
            return ServiceResult.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

        if request.email is not None and await self.user_repository.email_exists(
            request.email, exclude_user_id=user_id
        ):
            return ServiceResult.failure(ErrorKind.CONFLICT, EMAIL_EXISTS)

        try:
            user = await self.user_repository.update_user(
                user_id,
                first_name=request.first_name,
                last_name=request.last_name,
                email=request.email,
                gender=request.gender,
            )
        except UserValidationError:
            return ServiceResult.failure(ErrorKind.CONFLICT, EMAIL_EXISTS)

        # Deleted between the lookup and the update
        if user is None:
            return ServiceResult.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

        return ServiceResult.success(_user_response(user))

    async def delete(self, user_id: UUID) -> ServiceResult[None]:
        if not await self.user_repository.delete_user(user_id):
            return ServiceResult.failure(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return ServiceResult(value=None)
