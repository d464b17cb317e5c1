"""HS256 bearer tokens whose subject is the numeric user id.

PyJWT requires ``sub`` to be a string, so the id is written as text and
parsed back by ``read_user_id``.
"""

from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    claims = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def read_user_id(token: str) -> int:
    """Return the user id carried by ``token``.

    Raises ``jwt.InvalidTokenError`` for a bad signature, an expired token or
    a subject that is not an integer.
    """
    claims = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject is not a user id") from exc
