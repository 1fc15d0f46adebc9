"""Models package exports."""

from user_auth.models.auth import (
    CurrentUserResponse,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RevokeRefreshTokenResponse,
    UpdateUserRequest,
    UserResponse,
)
from user_auth.models.result import (
    ConfigurationError,
    ErrorKind,
    ServiceError,
    ServiceResult,
)
from user_auth.models.user import User

__all__ = [
    "ConfigurationError",
    "CurrentUserResponse",
    "ErrorKind",
    "LoginRequest",
    "RefreshTokenRequest",
    "RegisterRequest",
    "RevokeRefreshTokenResponse",
    "ServiceError",
    "ServiceResult",
    "UpdateUserRequest",
    "User",
    "UserResponse",
]
