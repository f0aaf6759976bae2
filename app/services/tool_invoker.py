"""Uniform call surface for named external tools.

Tools are reached through a gateway that accepts the envelope
``{"toolNamespace", "toolName", "args"}`` and answers with a content-block list::

    {"content": [{"type": "text", "text": "<json>"}], "isError": false}

Only the first block is read. Its ``text`` is decoded as JSON and anything
missing or unparsable decodes to ``{}``; downstream stages are expected to
cope with absent fields.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from app.config.logger import app_logger, log_performance, log_tool_event
from app.config.settings import settings
from app.services.errors import ToolInvocationError


def serialize_args(args: Dict[str, Any]) -> str:
    """Serialize tool arguments deterministically (sorted keys, compact)."""
    return json.dumps(args, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _first_block(envelope: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(envelope, dict):
        return None
    content = envelope.get("content")
    if isinstance(content, list):
        block = content[0] if content else None
    else:
        block = content
    return block if isinstance(block, dict) else None


def decode_tool_result(envelope: Any) -> Dict[str, Any]:
    """Decode the first content block's ``text`` as a JSON object.

    Never raises. Returns ``{}`` when the envelope has no blocks, the first
    block carries no text, the text is not JSON, or the JSON is not an object.
    """
    block = _first_block(envelope)
    if block is None:
        return {}
    text = block.get("text")
    if not isinstance(text, str) or not text.strip():
        return {}
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        app_logger.warning(f"Tool result text is not valid JSON ({len(text)} chars); using empty payload")
        return {}
    return payload if isinstance(payload, dict) else {}


def tool_error_message(tool_name: str, envelope: Any) -> str:
    """Extract the human-readable message of a tool-reported error."""
    block = _first_block(envelope)
    text = block.get("text") if block else None
    if isinstance(text, str) and text.strip():
        return text.strip()
    return f"Tool '{tool_name}' reported an error"


class ToolInvoker(ABC):
    """Invoke a named tool with a JSON-serializable argument object."""

    @abstractmethod
    async def invoke(self, namespace: str, tool_name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """Call ``tool_name`` in ``namespace`` and return its decoded payload.

        Raises:
            ToolInvocationError: transport failure, timeout, or tool-reported error
        """

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""


class HttpToolInvoker(ToolInvoker):
    """ToolInvoker backed by an HTTP tool gateway.

    One instance is shared by the whole process; it holds no per-run state,
    so concurrent pipeline runs can use it freely. No retries are performed.
    """

    CALL_PATH = "/tools/call"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        preview_chars: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.TOOL_GATEWAY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TOOL_TIMEOUT_SECONDS
        self.preview_chars = preview_chars if preview_chars is not None else settings.TOOL_LOG_PREVIEW_CHARS
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        self._owns_client = client is None

    async def invoke(self, namespace: str, tool_name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        body = serialize_args({"toolNamespace": namespace, "toolName": tool_name, "args": args})

        args_text = serialize_args(args)
        if len(args_text) > self.preview_chars:
            log_tool_event(
                namespace, tool_name,
                f"call (large payload, {len(args_text)} chars) {args_text[:self.preview_chars]}...",
            )
        else:
            log_tool_event(namespace, tool_name, f"call args={args_text}")

        start = time.perf_counter()
        try:
            response = await self._client.post(
                self.CALL_PATH,
                content=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            elapsed = time.perf_counter() - start
            log_tool_event(namespace, tool_name, f"timed out after {elapsed:.2f}s", level="ERROR")
            raise ToolInvocationError(
                tool_name, f"Tool '{tool_name}' timed out after {self.timeout:g}s", cause=exc
            ) from exc
        except httpx.HTTPError as exc:
            log_tool_event(namespace, tool_name, f"transport failure: {exc}", level="ERROR")
            raise ToolInvocationError(
                tool_name, f"Tool '{tool_name}' is unreachable: {exc}", cause=exc
            ) from exc

        elapsed = time.perf_counter() - start

        if response.status_code >= 400:
            detail = response.text.strip() or response.reason_phrase
            log_tool_event(
                namespace, tool_name, f"HTTP {response.status_code}: {detail[:200]}", level="ERROR"
            )
            raise ToolInvocationError(
                tool_name, f"Tool '{tool_name}' failed with HTTP {response.status_code}: {detail}"
            )

        try:
            envelope = response.json()
        except ValueError:
            # An undecodable envelope degrades like an undecodable block.
            log_tool_event(namespace, tool_name, "non-JSON envelope", level="WARNING")
            envelope = {}

        if isinstance(envelope, dict) and envelope.get("isError"):
            message = tool_error_message(tool_name, envelope)
            log_tool_event(namespace, tool_name, f"reported an error after {elapsed:.2f}s: {message}", level="ERROR")
            raise ToolInvocationError(tool_name, message)

        log_performance(f"tool {namespace}.{tool_name}", elapsed)
        return decode_tool_result(envelope)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
