"""Services package exports."""

from user_auth.services.logging_service import configure_logging, get_logger
from user_auth.services.password_service import PasswordService
from user_auth.services.session_service import SessionService
from user_auth.services.token_service import TokenService, hash_refresh_token
from user_auth.services.user_repository import UserRepository, UserValidationError

__all__ = [
    "PasswordService",
    "SessionService",
    "TokenService",
    "UserRepository",
    "UserValidationError",
    "configure_logging",
    "get_logger",
    "hash_refresh_token",
]
