"""Shared router dependencies."""

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.db import get_session
from app.services.errors import AuthorizationError
from app.services.result_store import SQLResultStore
from app.services.tool_invoker import ToolInvoker


async def get_result_store(session: AsyncSession = Depends(get_session)) -> SQLResultStore:
    """Result store bound to this request's session."""
    return SQLResultStore(session)


def get_tool_invoker(request: Request) -> ToolInvoker:
    """The process-wide invoker created during application startup."""
    return request.app.state.tool_invoker


def resolve_id(value: str, resource: str) -> UUID:
    """Parse a path or body id. An id that cannot exist is reported as not found."""
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise AuthorizationError(f"{resource} not found") from exc
