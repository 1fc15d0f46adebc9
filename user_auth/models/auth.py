"""Auth request and response models with validation."""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(v: str) -> str:
    stripped = v.strip()
    if not EMAIL_PATTERN.match(stripped):
        raise ValueError("Email must be a valid address")
    return stripped


class RegisterRequest(BaseModel):
    """New account registration.

    Attributes:
        email: Account email, unique regardless of case
        password: Plain-text password; strength rules are checked by the service
        first_name: Given name, also the first half of the derived username
        last_name: Family name, the second half of the derived username
        gender: Free-form gender value
    """

    email: str = Field(..., max_length=256)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    gender: str = Field(default="", max_length=50)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        """Ensure email has a plausible address shape."""
        return _check_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Ensure names are not whitespace only."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be empty or whitespace only")
        return stripped


class LoginRequest(BaseModel):
    """Login credentials for authentication."""

    email: str = Field(..., max_length=256)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        """Ensure email has a plausible address shape."""
        return _check_email(v)


class RefreshTokenRequest(BaseModel):
    """A refresh token presented for exchange or revocation."""

    refresh_token: str = Field(..., min_length=1)


class UpdateUserRequest(BaseModel):
    """Request to update an existing user's profile.

    All fields are optional; only provided fields are updated.
    """

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=256)
    gender: Optional[str] = Field(default=None, max_length=50)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: Optional[str]) -> Optional[str]:
        """Ensure email has a plausible address shape when provided."""
        if v is None:
            return v
        return _check_email(v)


class UserResponse(BaseModel):
    """User summary, with tokens attached after register or login."""

    id: UUID
    username: str
    first_name: str
    last_name: str
    email: str
    gender: str
    created_at: datetime
    last_modified_at: datetime
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class CurrentUserResponse(BaseModel):
    """The authenticated user's profile, optionally with a fresh access token."""

    first_name: str
    last_name: str
    email: str
    gender: str
    access_token: Optional[str] = None
    created_at: datetime
    last_modified_at: datetime


class RevokeRefreshTokenResponse(BaseModel):
    """Outcome message of a refresh-token revocation."""

    message: str
