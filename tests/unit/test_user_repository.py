"""Unit tests for UserRepository.

Tests SQL-level behavior with a mocked asyncpg pool.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import asyncpg
import pytest

from user_auth.models.user import User
from user_auth.services.user_repository import UserRepository, UserValidationError


@pytest.fixture
def repository(password_service):
    return UserRepository(password_service)


def _make_user_row(user_id=None, email="jane@example.com", username="janedoe", **overrides):
    """Create a dict that mimics an asyncpg Record for a users row."""
    now = datetime.now(timezone.utc)
    row = {
        "id": user_id or uuid4(),
        "email": email,
        "username": username,
        "first_name": "Jane",
        "last_name": "Doe",
        "gender": "female",
        "refresh_token_hash": None,
        "refresh_token_expires_at": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


def _patch_pool(pool):
    return patch(
        "user_auth.services.user_repository.get_pool",
        new_callable=AsyncMock,
        return_value=pool,
    )


# ---------------------------------------------------------------------------
# create_user
# ---------------------------------------------------------------------------

class TestCreateUser:
    """Tests for UserRepository.create_user."""

    async def test_inserts_row_and_returns_user(self, repository, mock_pool):
        pool, conn = mock_pool

        with _patch_pool(pool):
            user = await repository.create_user(
                email="jane@example.com",
                username="janedoe",
                password="P@ssw0rd!",
                first_name="Jane",
                last_name="Doe",
                gender="female",
            )

        assert isinstance(user, User)
        assert isinstance(user.id, UUID)
        assert user.username == "janedoe"
        assert user.refresh_token_hash is None

        conn.execute.assert_awaited_once()
        args = conn.execute.call_args[0]
        assert "INSERT INTO users" in args[0]
        # password is stored hashed, never in plain text
        assert "P@ssw0rd!" not in args
        assert args[4].startswith("$2")

    async def test_weak_password_rejected_before_insert(self, repository, mock_pool):
        pool, conn = mock_pool

        with _patch_pool(pool):
            with pytest.raises(UserValidationError) as exc_info:
                await repository.create_user(
                    email="jane@example.com",
                    username="janedoe",
                    password="weak",
                    first_name="Jane",
                    last_name="Doe",
                )

        assert len(exc_info.value.errors) > 1
        conn.execute.assert_not_awaited()

    async def test_unique_violation_becomes_validation_error(self, repository, mock_pool):
        pool, conn = mock_pool
        violation = asyncpg.UniqueViolationError("duplicate key")
        violation.constraint_name = "users_username_idx"
        conn.execute.side_effect = violation

        with _patch_pool(pool):
            with pytest.raises(UserValidationError) as exc_info:
                await repository.create_user(
                    email="jane@example.com",
                    username="janedoe",
                    password="P@ssw0rd!",
                    first_name="Jane",
                    last_name="Doe",
                )

        assert exc_info.value.errors == ["Username 'janedoe' is already taken."]


# ---------------------------------------------------------------------------
# lookups
# ---------------------------------------------------------------------------

class TestLookups:
    """Tests for get_by_* and exists checks."""

    async def test_get_by_email_is_case_insensitive(self, repository, mock_pool):
        pool, conn = mock_pool
        row = _make_user_row()
        row["password_hash"] = "$2b$04$hash"
        conn.fetchrow.return_value = row

        with _patch_pool(pool):
            result = await repository.get_by_email("Jane@Example.com")

        user, password_hash = result
        assert user.email == "jane@example.com"
        assert password_hash == "$2b$04$hash"
        assert "LOWER(email) = LOWER($1)" in conn.fetchrow.call_args[0][0]

    async def test_get_by_email_not_found(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        with _patch_pool(pool):
            assert await repository.get_by_email("ghost@example.com") is None

    async def test_get_by_refresh_token_hash_exact_match(self, repository, mock_pool):
        pool, conn = mock_pool
        expires = datetime.now(timezone.utc) + timedelta(days=2)
        conn.fetchrow.return_value = _make_user_row(
            refresh_token_hash="abc=", refresh_token_expires_at=expires
        )

        with _patch_pool(pool):
            user = await repository.get_by_refresh_token_hash("abc=")

        assert user.refresh_token_hash == "abc="
        assert user.refresh_token_expires_at == expires
        sql, token_hash = conn.fetchrow.call_args[0]
        assert "refresh_token_hash = $1" in sql
        assert token_hash == "abc="

    async def test_email_exists_returns_bool(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = True

        with _patch_pool(pool):
            assert await repository.email_exists("JANE@example.com") is True

        sql = conn.fetchval.call_args[0][0]
        assert "EXISTS" in sql
        assert "LOWER(email)" in sql

    async def test_username_exists_false(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = False

        with _patch_pool(pool):
            assert await repository.username_exists("janedoe") is False

    async def test_get_roles(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [{"role": "Admin"}, {"role": "User"}]

        with _patch_pool(pool):
            roles = await repository.get_roles(uuid4())

        assert roles == ["Admin", "User"]


# ---------------------------------------------------------------------------
# refresh-token slot
# ---------------------------------------------------------------------------

class TestSwapRefreshToken:
    """Tests for the compare-and-swap on the refresh-token slot."""

    async def test_swap_succeeds_when_expected_hash_matches(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        user_id = uuid4()
        expires = datetime.now(timezone.utc) + timedelta(days=2)

        with _patch_pool(pool):
            swapped = await repository.swap_refresh_token(user_id, None, "new=", expires)

        assert swapped is True
        args = conn.execute.call_args[0]
        assert "IS NOT DISTINCT FROM $2" in args[0]
        assert args[1:5] == (user_id, None, "new=", expires)

    async def test_swap_stamps_caller_supplied_timestamp(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)

        with _patch_pool(pool):
            await repository.swap_refresh_token(uuid4(), "old=", None, None, updated_at=stamp)

        assert conn.execute.call_args[0][5] == stamp

    async def test_swap_lost_returns_false(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "UPDATE 0"

        with _patch_pool(pool):
            swapped = await repository.swap_refresh_token(uuid4(), "old=", None, None)

        assert swapped is False

    async def test_hash_and_expiry_must_be_set_together(self, repository, mock_pool):
        pool, conn = mock_pool

        with _patch_pool(pool):
            with pytest.raises(ValueError):
                await repository.swap_refresh_token(uuid4(), None, "new=", None)

        conn.execute.assert_not_awaited()


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------

class TestUpdateUser:
    """Tests for dynamic profile updates."""

    async def test_updates_only_provided_fields(self, repository, mock_pool):
        pool, conn = mock_pool
        user_id = uuid4()
        conn.fetchrow.return_value = _make_user_row(user_id=user_id, first_name="Janet")

        with _patch_pool(pool):
            user = await repository.update_user(user_id, first_name="Janet")

        assert user.first_name == "Janet"
        sql = conn.fetchrow.call_args[0][0]
        assert "first_name = $1" in sql
        assert "updated_at = $2" in sql
        assert "email =" not in sql

    async def test_update_without_fields_still_stamps_updated_at(self, repository, mock_pool):
        pool, conn = mock_pool
        user_id = uuid4()
        conn.fetchrow.return_value = _make_user_row(user_id=user_id)

        with _patch_pool(pool):
            user = await repository.update_user(user_id)

        assert user.id == user_id
        sql, stamp, target = conn.fetchrow.call_args[0]
        assert "SET updated_at = $1" in sql
        assert "WHERE id = $2" in sql
        assert isinstance(stamp, datetime)
        assert target == user_id

    async def test_update_missing_user_returns_none(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        with _patch_pool(pool):
            assert await repository.update_user(uuid4(), gender="x") is None

    async def test_duplicate_email_raises_validation_error(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with _patch_pool(pool):
            with pytest.raises(UserValidationError):
                await repository.update_user(uuid4(), email="taken@example.com")


class TestDeleteUser:
    """Tests for hard delete."""

    async def test_delete_existing(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "DELETE 1"

        with _patch_pool(pool):
            assert await repository.delete_user(uuid4()) is True

    async def test_delete_missing(self, repository, mock_pool):
        pool, conn = mock_pool
        conn.execute.return_value = "DELETE 0"

        with _patch_pool(pool):
            assert await repository.delete_user(uuid4()) is False
