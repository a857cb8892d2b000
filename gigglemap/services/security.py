"""Password hashing and access tokens."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from gigglemap.core.config import Settings
from gigglemap.core.exceptions import AuthenticationError

BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes; recent releases raise instead of truncating
_BCRYPT_MAX_BYTES = 72


def _secret_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(_secret_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_secret_bytes(password), password_hash.encode("ascii"))
    except ValueError:
        # malformed stored hash
        return False


class TokenService:
    def __init__(self, *, secret: str, algorithm: str = "HS256", expires_days: int = 7) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(days=expires_days)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expires_days=settings.jwt_expires_days,
        )

    def issue(self, *, user_id: int, username: str, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "userId": int(user_id),
            "username": username,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc
        if not isinstance(payload.get("userId"), int):
            raise AuthenticationError("Invalid token")
        return payload
