"""
JWT access/refresh token issuing and verification.
"""
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from pydantic import BaseModel

from .config import Settings
from .exceptions import InvalidToken, TokenClaimsMismatch, TokenExpired

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")

ACCESS = "access"
REFRESH = "refresh"


class TokenClaims(BaseModel):
    user_id: int
    email: str
    role: str
    session_id: str


def parse_duration(value: str) -> int:
    """Convert a TTL string such as "15m" or "7d" to seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        logger.warning(f"Unparseable token lifetime {value!r}; using {DEFAULT_TTL_SECONDS}s")
        return DEFAULT_TTL_SECONDS
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit or "s"]


class TokenService:
    """Signs and verifies access and refresh tokens with distinct secrets."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: str = "15m",
        refresh_ttl: str = "7d",
        issuer: str = "smart-edu-backend",
        audience: str = "smart-edu-frontend",
        algorithm: str = "HS256",
    ):
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: parse_duration(access_ttl), REFRESH: parse_duration(refresh_ttl)}
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        access_secret, refresh_secret = settings.jwt_secrets()
        return cls(
            access_secret=access_secret,
            refresh_secret=refresh_secret,
            access_ttl=settings.JWT_EXPIRES_IN,
            refresh_ttl=settings.JWT_REFRESH_EXPIRES_IN,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            algorithm=settings.JWT_ALGORITHM,
        )

    @property
    def access_token_ttl_seconds(self) -> int:
        return self._ttls[ACCESS]

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self._ttls[REFRESH]

    def issue_access(self, claims: TokenClaims) -> str:
        return self._issue(claims, ACCESS)

    def issue_refresh(self, claims: TokenClaims) -> str:
        return self._issue(claims, REFRESH)

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, REFRESH)

    def _issue(self, claims: TokenClaims, kind: str) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = claims.model_dump()
        payload.update({
            "type": kind,
            "jti": uuid.uuid4().hex,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._ttls[kind])).timestamp()),
        })
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def _verify(self, token: str, kind: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpired(f"{kind.capitalize()} token expired") from e
        except (jwt.InvalidIssuerError, jwt.InvalidAudienceError, jwt.MissingRequiredClaimError) as e:
            raise TokenClaimsMismatch(f"{kind.capitalize()} token claims rejected: {e}") from e
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Invalid {kind} token") from e

        if payload.get("type") != kind:
            raise InvalidToken(f"Invalid {kind} token")
        try:
            return TokenClaims(
                user_id=payload["user_id"],
                email=payload["email"],
                role=payload["role"],
                session_id=payload["session_id"],
            )
        except (KeyError, ValueError) as e:
            raise InvalidToken(f"Invalid {kind} token") from e
