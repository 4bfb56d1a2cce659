"""PM2 backend: drives the ``pm2`` command-line tool."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from ..errors import SupervisorError
from ..models import ProcessRecord, ProcessSnapshot, ProcessStatus
from .base import SupervisorClient

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0

# PM2 reports a few transitional states we fold into the panel's five
_STATUS_MAP = {
    "online": ProcessStatus.ONLINE,
    "stopped": ProcessStatus.STOPPED,
    "stopping": ProcessStatus.STOPPED,
    "one-launch-status": ProcessStatus.STOPPED,
    "errored": ProcessStatus.ERRORED,
    "launching": ProcessStatus.LAUNCHING,
    "waiting restart": ProcessStatus.LAUNCHING,
}

_ERROR_MARKER = "[PM2][ERROR]"


def parse_jlist(output: str) -> ProcessSnapshot:
    """Parse ``pm2 jlist`` output into records, keeping PM2's order.

    PM2 sometimes prints banner lines (daemon upgrade notices) before the
    JSON array, so parsing starts at the first ``[``.
    """
    start = output.find("[")
    if start < 0:
        raise SupervisorError("pm2 jlist returned no process list", operation="list")
    try:
        raw: Any = json.loads(output[start:])
    except json.JSONDecodeError as exc:
        raise SupervisorError(f"pm2 jlist returned invalid JSON: {exc}", operation="list") from exc
    if not isinstance(raw, list) or not all(isinstance(entry, dict) for entry in raw):
        raise SupervisorError("pm2 jlist returned an unexpected process list", operation="list")

    records = []
    for entry in raw:
        env = entry.get("pm2_env")
        if not isinstance(env, dict):
            env = {}
        records.append(ProcessRecord(
            id=str(entry.get("pm_id")),
            name=str(entry.get("name", "")),
            status=_STATUS_MAP.get(str(env.get("status", "")).lower(), ProcessStatus.UNKNOWN),
        ))
    return tuple(records)


def error_detail(output: str) -> str:
    """Pull the human-readable reason out of PM2's stderr/stdout."""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    flagged = [line.split(_ERROR_MARKER, 1)[1].strip() for line in lines if _ERROR_MARKER in line]
    if flagged:
        return "; ".join(flagged)
    return lines[-1] if lines else ""


class Pm2Client(SupervisorClient):
    backend = "pm2"

    def __init__(self, *, binary: str = "pm2", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.binary = binary
        self.timeout = timeout
        self._connected = False

    async def connect(self) -> None:
        if self._connected:
            return
        # ``pm2 ping`` also spawns the daemon if it is not running yet
        await self._run("ping", operation="connect")
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def list_processes(self) -> ProcessSnapshot:
        return parse_jlist(await self._run("jlist", operation="list"))

    async def start(self, process_id: str) -> None:
        await self._run("start", process_id, operation="start", process_id=process_id)
        log.info("PM2 process %s started", process_id)

    async def stop(self, process_id: str) -> None:
        await self._run("stop", process_id, operation="stop", process_id=process_id)
        log.info("PM2 process %s stopped", process_id)

    async def restart(self, process_id: str) -> None:
        await self._run("restart", process_id, operation="restart", process_id=process_id)
        log.info("PM2 process %s restarted", process_id)

    async def _run(self, *args: str, operation: str, process_id: str | None = None) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SupervisorError(
                f"Could not run {self.binary}: {exc}", operation=operation, process_id=process_id,
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise SupervisorError(
                f"pm2 {args[0]} timed out after {self.timeout:g}s",
                operation=operation,
                process_id=process_id,
            ) from None

        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace")
            detail = error_detail(err) or error_detail(out)
            log.warning("pm2 %s exited %d: %s", " ".join(args), proc.returncode, detail[:200])
            raise SupervisorError(
                detail or f"pm2 {args[0]} exited with code {proc.returncode}",
                operation=operation,
                process_id=process_id,
            )
        return out
