"""Bearer tokens for MediBook users; the subject is the user's id."""

from datetime import datetime, timedelta, timezone

import jwt

from medibook.core import config


class InvalidToken(Exception):
    pass


def create_access_token(user_id: int, role: str | None = None, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def user_id_from_token(token: str) -> int:
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise InvalidToken("Invalid token") from exc

    subject = str(payload["sub"])
    if not subject.isdigit():
        raise InvalidToken("Invalid token subject")
    return int(subject)
