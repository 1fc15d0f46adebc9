"""Access-token signing and refresh-token secrets."""

import base64
import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from user_auth.config import JwtSettings
from user_auth.models.result import ConfigurationError
from user_auth.models.user import User
from user_auth.services.user_repository import UserRepository

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
REFRESH_TOKEN_BYTES = 64


def hash_refresh_token(raw_token: str) -> str:
    """Return base64(SHA-256(raw_token)), the only form ever persisted."""
    digest = hashlib.sha256(raw_token.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class TokenService:
    """Issues signed access tokens and random refresh-token secrets.

    The signing configuration is fixed at construction; an empty secret is
    rejected immediately so a misconfigured process never starts serving.
    """

    def __init__(self, config: JwtSettings, user_repository: UserRepository):
        if not config.secret:
            raise ConfigurationError("JWT secret key is not configured.")
        self.config = config
        self.user_repository = user_repository

    @property
    def access_token_expire_minutes(self) -> int:
        return self.config.access_token_expire_minutes

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(days=self.config.refresh_token_expire_days)

    def generate_refresh_token(self) -> str:
        """Generate a refresh-token secret.

        Returns:
            Base64 encoding of 64 bytes from the OS CSPRNG
        """
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    async def generate_token(self, user: User) -> str:
        """Create a signed JWT access token for a resolved user.

        Args:
            user: The user the token identifies; never None

        Returns:
            Encoded JWT string
        """
        roles = await self.user_repository.get_roles(user.id)
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "name": user.username,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "gender": user.gender,
            "roles": roles,
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "iat": now,
            "exp": now + timedelta(minutes=self.config.access_token_expire_minutes),
        }
        token = jwt.encode(payload, self.config.secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_created",
            user_id=str(user.id),
            roles=roles,
            expires_minutes=self.config.access_token_expire_minutes,
        )
        return token

    def validate_access_token(self, token: str) -> dict:
        """Decode and validate a JWT access token.

        Args:
            token: Encoded JWT string

        Returns:
            Decoded claims

        Raises:
            ValueError: If the token is invalid, expired, or malformed
        """
        try:
            return jwt.decode(
                token,
                self.config.secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={"require": ["exp", "sub", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            raise ValueError("Access token has expired")
        except jwt.InvalidTokenError as e:
            raise ValueError(f"Invalid access token: {e}")
