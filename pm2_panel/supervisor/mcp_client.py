"""MCP backend: controls processes through an MCP process-manager daemon.

The daemon exposes ``list_processes``, ``start_process`` and
``stop_process`` tools over streamable HTTP and identifies processes by
name, so the name doubles as the panel's process id.  It has no restart
tool: restart is stop followed by start with the command the daemon
reports for that process.  The daemon does not report a process's
environment, so a restarted process only gets the daemon's own
environment, not the extra variables it was first started with.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from ..errors import SupervisorError
from ..models import ProcessRecord, ProcessSnapshot, ProcessStatus
from .base import SupervisorClient

log = logging.getLogger(__name__)

DEFAULT_URL = "http://127.0.0.1:8901/mcp"

_STATUS_MAP = {
    "running": ProcessStatus.ONLINE,
    "starting": ProcessStatus.LAUNCHING,
    "stopping": ProcessStatus.STOPPED,
    "stopped": ProcessStatus.STOPPED,
    "failed": ProcessStatus.ERRORED,
}

# Statuses the daemon uses to signal a failed tool call
_ERROR_STATUSES = {"error", "not_found"}


def tool_payload(result: Any) -> dict[str, Any]:
    """Extract the dict a tool returned from a ``CallToolResult``."""
    for block in result.content or []:
        text = getattr(block, "text", None)
        if text is None:
            continue
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return {"status": "error", "error": text} if result.isError else {"text": text}
        if isinstance(payload, dict):
            return payload

    structured = getattr(result, "structuredContent", None)
    if isinstance(structured, dict):
        inner = structured.get("result")
        return inner if isinstance(inner, dict) else structured
    return {}


class McpProcessManagerClient(SupervisorClient):
    backend = "mcp"

    def __init__(self, *, url: str = DEFAULT_URL, timeout: float = 15.0) -> None:
        self.url = url
        self.timeout = timeout
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None

    async def connect(self) -> None:
        if self._session is not None:
            return
        stack = AsyncExitStack()
        try:
            read, write, _ = await stack.enter_async_context(
                streamablehttp_client(self.url, timeout=timedelta(seconds=self.timeout))
            )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception as exc:
            await stack.aclose()
            raise SupervisorError(
                f"Could not reach process manager at {self.url}: {exc}", operation="connect",
            ) from exc
        self._stack = stack
        self._session = session

    async def disconnect(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            await stack.aclose()

    async def list_processes(self) -> ProcessSnapshot:
        payload = await self._call("list_processes", {}, operation="list")
        return tuple(
            ProcessRecord(
                id=str(entry.get("name", "")),
                name=str(entry.get("name", "")),
                status=_STATUS_MAP.get(str(entry.get("status", "")), ProcessStatus.UNKNOWN),
            )
            for entry in payload.get("processes", [])
        )

    async def start(self, process_id: str) -> None:
        entry = await self._describe(process_id, operation="start")
        await self._call(
            "start_process",
            {
                "name": process_id,
                "command": entry["command"],
                "args": entry.get("args") or [],
                "cwd": entry.get("cwd"),
            },
            operation="start",
            process_id=process_id,
        )
        log.info("Process %s started via %s", process_id, self.url)

    async def stop(self, process_id: str) -> None:
        await self._call("stop_process", {"name": process_id}, operation="stop", process_id=process_id)
        log.info("Process %s stopped via %s", process_id, self.url)

    async def restart(self, process_id: str) -> None:
        entry = await self._describe(process_id, operation="restart")
        await self._call("stop_process", {"name": process_id}, operation="restart", process_id=process_id)
        await self._call(
            "start_process",
            {
                "name": process_id,
                "command": entry["command"],
                "args": entry.get("args") or [],
                "cwd": entry.get("cwd"),
            },
            operation="restart",
            process_id=process_id,
        )
        log.info("Process %s restarted via %s", process_id, self.url)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _describe(self, process_id: str, *, operation: str) -> dict[str, Any]:
        payload = await self._call("list_processes", {}, operation=operation, process_id=process_id)
        for entry in payload.get("processes", []):
            if entry.get("name") == process_id and entry.get("command"):
                return entry
        raise SupervisorError("process not found", operation=operation, process_id=process_id)

    async def _call(
        self,
        tool: str,
        arguments: dict[str, Any],
        *,
        operation: str,
        process_id: str | None = None,
    ) -> dict[str, Any]:
        if self._session is None:
            raise SupervisorError("not connected", operation=operation, process_id=process_id)
        try:
            result = await self._session.call_tool(tool, arguments)
        except Exception as exc:
            raise SupervisorError(
                f"{tool} failed: {exc}", operation=operation, process_id=process_id,
            ) from exc

        payload = tool_payload(result)
        if result.isError or payload.get("status") in _ERROR_STATUSES:
            raise SupervisorError(
                str(payload.get("error") or f"{tool} failed"),
                operation=operation,
                process_id=process_id,
            )
        return payload
