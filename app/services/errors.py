"""Error taxonomy for campaign generation.

Every error carries the HTTP status class it maps to at the API boundary so
routers never have to guess between a client and a server failure.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for failures surfaced to the caller of the pipeline."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    """Missing or malformed caller input. Raised before any Source exists."""

    status_code = 400


class AuthorizationError(PipelineError):
    """The caller does not own the referenced project.

    Reported as 404 so a foreign project is indistinguishable from a missing one.
    """

    status_code = 404


class ToolInvocationError(PipelineError):
    """A named tool call failed (transport, timeout, or tool-reported error)."""

    def __init__(self, tool_name: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.tool_name = tool_name
        self.cause = cause

    def __repr__(self) -> str:
        return f"ToolInvocationError(tool_name={self.tool_name!r}, message={self.message!r})"


class PersistenceError(PipelineError):
    """A durable write or read against the result store failed."""


class InvalidSourceTransition(RuntimeError):
    """A Source lifecycle transition that the state machine forbids.

    This is a programming error, not a runtime outcome: nothing maps it to a
    client response.
    """

    def __init__(self, source_id: str, current: str, requested: str):
        super().__init__(
            f"Source {source_id} cannot move from '{current}' to '{requested}'"
        )
        self.source_id = source_id
        self.current = current
        self.requested = requested
