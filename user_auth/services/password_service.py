"""Password hashing, verification, and strength rules."""

import secrets

import bcrypt
import structlog

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class PasswordService:
    """Credential verifier backed by bcrypt."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        # Stand-in hash for logins against unknown emails, at the same cost
        self.dummy_hash = self.hash_password(secrets.token_urlsafe(16))

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        A malformed stored hash counts as a mismatch.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    def validate_password(self, password: str) -> list[str]:
        """Check a candidate password against the strength rules.

        Returns:
            One message per failed rule; empty when the password is acceptable
        """
        errors = []
        if len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters.")
        if not any(c.isdigit() for c in password):
            errors.append("Passwords must have at least one digit ('0'-'9').")
        if not any(c.islower() for c in password):
            errors.append("Passwords must have at least one lowercase ('a'-'z').")
        if not any(c.isupper() for c in password):
            errors.append("Passwords must have at least one uppercase ('A'-'Z').")
        if all(c.isalnum() for c in password):
            errors.append("Passwords must have at least one non alphanumeric character.")
        return errors
