"""HS256 bearer tokens identifying the calling user."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.config.settings import settings

ALGORITHM = "HS256"


def create_local_token(user_id: str, expires_in: Optional[int] = None) -> str:
    """Issue an access token whose subject is ``user_id``.

    Args:
        user_id: Identity of the caller (any opaque string)
        expires_in: Lifetime in seconds, defaults to LOCAL_AUTH_TOKEN_EXP_SECONDS

    Returns:
        str: Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else settings.LOCAL_AUTH_TOKEN_EXP_SECONDS
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
    }
    return jwt.encode(payload, settings.LOCAL_AUTH_SECRET, algorithm=ALGORITHM)


def decode_local_token(token: str) -> dict:
    """Verify a token and return its claims.

    Raises:
        ValueError: If the token is malformed, badly signed or expired
    """
    try:
        return jwt.decode(token, settings.LOCAL_AUTH_SECRET, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError(f"Invalid token: {exc}") from exc
