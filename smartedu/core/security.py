"""
Password hashing and strength scoring.

Hashes use passlib's ``bcrypt_sha256`` (SHA-256 pre-hash then bcrypt), so
inputs past bcrypt's 72-byte window still hash and every byte is significant.
Plain ``bcrypt`` digests are accepted on verify for compatibility.
"""
import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from typing import List

from passlib.context import CryptContext

from .exceptions import HashingError

logger = logging.getLogger(__name__)

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'
COMMON_PATTERNS = ("password", "123456", "qwerty", "abc123")
SECURE_PASSWORD_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*"

_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")


@dataclass(frozen=True)
class PasswordStrength:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    score: int = 0


class PasswordHasher:
    """Salted one-way password hashing."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt_sha256", "bcrypt"],
            default="bcrypt_sha256",
            deprecated="auto",
            bcrypt_sha256__rounds=rounds,
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        try:
            return self._context.hash(password)
        except (ValueError, TypeError) as e:
            logger.error(f"Password hashing failed: {e}")
            raise HashingError() from e

    def verify(self, password: str, digest: str) -> bool:
        """True iff ``password`` hashes to ``digest``. Malformed digests verify as False."""
        try:
            return self._context.verify(password, digest)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification rejected digest: {e}")
            return False

    def dummy_verify(self) -> None:
        """Spend roughly one verify's worth of time (unknown-user logins)."""
        self._context.dummy_verify()


def score_password_strength(password: str) -> PasswordStrength:
    """Deterministic strength check; score ranges 0..5."""
    errors: List[str] = []
    score = 0

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    else:
        score += 1

    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    else:
        score += 1

    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    else:
        score += 1

    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    else:
        score += 1

    if not _SPECIAL_RE.search(password):
        errors.append("Password must contain at least one special character")
    else:
        score += 1

    lowered = password.lower()
    if any(common in lowered for common in COMMON_PATTERNS):
        errors.append("Password contains common patterns")
        score -= 1

    return PasswordStrength(is_valid=not errors, errors=errors, score=max(0, score))


def generate_session_token() -> str:
    return secrets.token_hex(32)


def generate_random_string(length: int = 32) -> str:
    return secrets.token_hex(length)


def generate_secure_password(length: int = 12) -> str:
    return "".join(secrets.choice(SECURE_PASSWORD_CHARSET) for _ in range(length))
