"""PostgreSQL-backed user repository."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from user_auth.database import get_pool
from user_auth.models.user import User
from user_auth.services.password_service import PasswordService

logger = structlog.get_logger(__name__)

USER_COLUMNS = """
    id, email, username, first_name, last_name, gender,
    refresh_token_hash, refresh_token_expires_at, created_at, updated_at
"""

_CONSTRAINT_MESSAGES = {
    "users_email_lower_idx": "Email '{email}' is already taken.",
    "users_username_idx": "Username '{username}' is already taken.",
}


class UserValidationError(Exception):
    """The user record was rejected; carries every reason."""

    def __init__(self, errors: list[str]):
        super().__init__(", ".join(errors))
        self.errors = errors


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        gender=row["gender"],
        refresh_token_hash=row["refresh_token_hash"],
        refresh_token_expires_at=row["refresh_token_expires_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserRepository:
    """CRUD over users, their roles, and their refresh-token slot."""

    def __init__(self, password_service: Optional[PasswordService] = None):
        self.password_service = password_service or PasswordService()

    async def create_user(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        gender: str = "",
    ) -> User:
        """Validate the password, hash it, and insert a new user.

        Args:
            email: Account email
            username: Unique username
            password: Plain-text password (will be validated and hashed)
            first_name: Given name
            last_name: Family name
            gender: Gender value

        Returns:
            Created User model

        Raises:
            UserValidationError: If the password fails strength rules or a
                uniqueness constraint rejects the row
        """
        errors = self.password_service.validate_password(password)
        if errors:
            raise UserValidationError(errors)

        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = self.password_service.hash_password(password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, email, username, password_hash, first_name, last_name, gender, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    user_id,
                    email,
                    username,
                    password_hash,
                    first_name,
                    last_name,
                    gender,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            template = _CONSTRAINT_MESSAGES.get(
                e.constraint_name or "", "User violates a uniqueness constraint."
            )
            raise UserValidationError([template.format(email=email, username=username)]) from e

        logger.info("user_created", user_id=str(user_id), username=username)

        return User(
            id=user_id,
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            gender=gender,
            created_at=now,
            updated_at=now,
        )

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID, or None if not found."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_email(self, email: str) -> Optional[tuple[User, str]]:
        """Get a user by email (case-insensitive).

        Args:
            email: Email to look up

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE LOWER(email) = LOWER($1)
                """,
                email,
            )

        if row is None:
            return None
        return _row_to_user(row), row["password_hash"]

    async def get_by_refresh_token_hash(self, token_hash: str) -> Optional[User]:
        """Get the user whose stored refresh-token hash equals token_hash."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE refresh_token_hash = $1",
                token_hash,
            )

        if row is None:
            return None
        return _row_to_user(row)

    async def email_exists(self, email: str, exclude_user_id: Optional[UUID] = None) -> bool:
        """Whether any user (other than exclude_user_id) owns this email, ignoring case."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            exists = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM users
                    WHERE LOWER(email) = LOWER($1)
                      AND ($2::uuid IS NULL OR id <> $2::uuid)
                )
                """,
                email,
                exclude_user_id,
            )

        return bool(exists)

    async def username_exists(self, username: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            exists = await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM users WHERE username = $1)",
                username,
            )

        return bool(exists)

    async def get_roles(self, user_id: UUID) -> list[str]:
        """Role names held by a user, sorted alphabetically."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT role FROM user_roles WHERE user_id = $1 ORDER BY role",
                user_id,
            )

        return [row["role"] for row in rows]

    async def swap_refresh_token(
        self,
        user_id: UUID,
        expected_hash: Optional[str],
        new_hash: Optional[str],
        expires_at: Optional[datetime],
        updated_at: Optional[datetime] = None,
    ) -> bool:
        """Atomically replace the refresh-token slot if it still holds expected_hash.

        Pass new_hash=None and expires_at=None to clear the slot. updated_at
        lets the caller stamp the row with the same instant it reports back;
        it defaults to now.

        Returns:
            True if the row was updated, False if the slot changed underneath
            or the user no longer exists
        """
        if (new_hash is None) != (expires_at is None):
            raise ValueError("refresh token hash and expiry must be set together")

        now = updated_at or datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token_hash = $3,
                    refresh_token_expires_at = $4,
                    updated_at = $5
                WHERE id = $1 AND refresh_token_hash IS NOT DISTINCT FROM $2
                """,
                user_id,
                expected_hash,
                new_hash,
                expires_at,
                now,
            )

        swapped = result == "UPDATE 1"
        if not swapped:
            logger.warning("refresh_token_swap_lost", user_id=str(user_id))
        return swapped

    async def update_user(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        gender: Optional[str] = None,
    ) -> Optional[User]:
        """Update profile fields that are not None.

        updated_at is stamped even when no field is given.

        Returns:
            Updated User model, or None if user not found
        """
        set_clauses = []
        params = []
        param_idx = 1

        for column, value in (
            ("first_name", first_name),
            ("last_name", last_name),
            ("email", email),
            ("gender", gender),
        ):
            if value is not None:
                set_clauses.append(f"{column} = ${param_idx}")
                params.append(value)
                param_idx += 1

        now = datetime.now(timezone.utc)
        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(now)
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {USER_COLUMNS}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            raise UserValidationError([f"Email '{email}' is already taken."]) from e

        if row is None:
            return None

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=[c.split(" = ")[0] for c in set_clauses if "updated_at" not in c],
        )
        return _row_to_user(row)

    async def delete_user(self, user_id: UUID) -> bool:
        """Hard-delete a user; roles cascade.

        Returns:
            True if the user was deleted, False if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)

        deleted = result == "DELETE 1"

        if deleted:
            logger.info("user_deleted", user_id=str(user_id))
        else:
            logger.warning("user_delete_not_found", user_id=str(user_id))

        return deleted
