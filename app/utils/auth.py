"""Authentication dependencies.

Token issuance and user management live outside this service; here we only
verify the bearer token and hand the caller's id to the routers.
"""

from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config.logger import app_logger
from app.utils.local_tokens import decode_local_token

security_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Bearer token authentication",
    auto_error=False,
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_scheme),
) -> str:
    """Return the authenticated user id or fail with 401.

    Raises:
        HTTPException: If the header is missing, the token is invalid or it
            carries no subject
    """
    if not credentials or not credentials.credentials.strip():
        raise _unauthorized("Unauthorized")

    try:
        payload = decode_local_token(credentials.credentials.strip())
    except ValueError as exc:
        app_logger.warning(f"Rejected bearer token: {exc}")
        raise _unauthorized(str(exc)) from exc

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")
    return str(user_id)


