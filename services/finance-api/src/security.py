"""Password hashing, JWT issuing, and the bearer-token dependency."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from shared.observability.telemetry import bind_user_context

from settings import ServiceSettings, load_service_settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticationError(RuntimeError):
    """Missing, malformed, or expired credentials; the client only ever sees a generic 401."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized hash format stored for the account.
        return False


def create_access_token(user_id: str, settings: ServiceSettings, *, now: datetime | None = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: ServiceSettings) -> str:
    """Return the user id (`sub`) carried by a valid token."""

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        logger.info({"event": "auth_token_expired"})
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.info({"event": "auth_token_invalid", "error_type": type(exc).__name__})
        raise AuthenticationError("Invalid token") from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationError("Invalid token")
    return user_id


def get_service_settings() -> ServiceSettings:
    return load_service_settings()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: ServiceSettings = Depends(get_service_settings),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")

    user_id = decode_access_token(credentials.credentials, settings)
    bind_user_context(user_id)
    return user_id
