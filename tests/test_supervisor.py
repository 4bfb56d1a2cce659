"""Tests for the supervisor backends (PM2 CLI and MCP daemon)."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from conftest import FakeSupervisor
from pm2_panel.errors import SupervisorError
from pm2_panel.models import ProcessStatus
from pm2_panel.supervisor import McpProcessManagerClient, Pm2Client
from pm2_panel.supervisor import pm2 as pm2_module
from pm2_panel.supervisor.mcp_client import tool_payload

JLIST = json.dumps([
    {"pm_id": 0, "name": "api", "pm2_env": {"status": "online"}},
    {"pm_id": 1, "name": "worker", "pm2_env": {"status": "errored"}},
    {"pm_id": 2, "name": "cron", "pm2_env": {"status": "waiting restart"}},
    {"pm_id": 3, "name": "odd", "pm2_env": {"status": "something new"}},
])


class _FakeProc:
    def __init__(self, returncode=0, stdout=b"", stderr=b"", delay=0.0):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._delay = delay
        self.killed = False
        self.waited = False

    async def communicate(self):
        await asyncio.sleep(self._delay)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        self.waited = True
        return -9


@pytest.fixture
def spawn(monkeypatch):
    """Replace subprocess creation; returns the list of argv seen."""
    calls = []
    procs = []

    async def fake_exec(*args, **kwargs):
        calls.append(args)
        return procs.pop(0)

    monkeypatch.setattr(pm2_module.asyncio, "create_subprocess_exec", fake_exec)
    return SimpleNamespace(calls=calls, procs=procs)


class TestParseJlist:
    def test_maps_records_in_order(self):
        snapshot = pm2_module.parse_jlist(JLIST)
        assert [(p.id, p.name) for p in snapshot] == [("0", "api"), ("1", "worker"), ("2", "cron"), ("3", "odd")]
        assert [p.status for p in snapshot] == [
            ProcessStatus.ONLINE,
            ProcessStatus.ERRORED,
            ProcessStatus.LAUNCHING,
            ProcessStatus.UNKNOWN,
        ]

    def test_skips_banner_lines(self):
        output = ">>>> In-memory PM2 is out-of-date, do:\n>>>> $ pm2 update\n" + JLIST
        assert len(pm2_module.parse_jlist(output)) == 4

    def test_invalid_output(self):
        with pytest.raises(SupervisorError):
            pm2_module.parse_jlist("not json")

    @pytest.mark.parametrize("output", ["[1]", "[\"api\"]", "[[]]", '[{"pm_id": 0}, null]'])
    def test_unexpected_shape_is_supervisor_error(self, output):
        with pytest.raises(SupervisorError, match="unexpected process list"):
            pm2_module.parse_jlist(output)

    def test_missing_env_is_unknown_status(self):
        (record,) = pm2_module.parse_jlist('[{"pm_id": 5, "name": "x", "pm2_env": null}]')
        assert record.status is ProcessStatus.UNKNOWN


def test_error_detail_prefers_pm2_error_lines():
    output = "[PM2] Applying action stopProcessId on app [7](ids: [ '7' ])\n[PM2][ERROR] Process or Namespace 7 not found\n"
    assert pm2_module.error_detail(output) == "Process or Namespace 7 not found"


@pytest.mark.asyncio
async def test_pm2_session_and_list(spawn):
    spawn.procs.extend([_FakeProc(stdout=b"pong"), _FakeProc(stdout=JLIST.encode())])
    client = Pm2Client(binary="/usr/bin/pm2")

    async with client.session() as sv:
        snapshot = await sv.list_processes()

    assert spawn.calls == [("/usr/bin/pm2", "ping"), ("/usr/bin/pm2", "jlist")]
    assert snapshot[0].name == "api"


@pytest.mark.asyncio
async def test_pm2_command_failure_carries_detail(spawn):
    spawn.procs.append(_FakeProc(returncode=1, stderr=b"[PM2][ERROR] Process or Namespace 7 not found\n"))

    with pytest.raises(SupervisorError) as excinfo:
        await Pm2Client().stop("7")

    assert excinfo.value.detail == "Process or Namespace 7 not found"
    assert excinfo.value.process_id == "7"
    assert spawn.calls == [("pm2", "stop", "7")]


@pytest.mark.asyncio
async def test_pm2_timeout_kills_process(spawn):
    proc = _FakeProc(delay=1.0)
    spawn.procs.append(proc)

    with pytest.raises(SupervisorError, match="timed out"):
        await Pm2Client(timeout=0.01).restart("1")

    assert proc.killed
    assert proc.waited


@pytest.mark.asyncio
async def test_pm2_missing_binary(monkeypatch):
    async def missing(*args, **kwargs):
        raise FileNotFoundError(2, "No such file or directory")

    monkeypatch.setattr(pm2_module.asyncio, "create_subprocess_exec", missing)

    with pytest.raises(SupervisorError, match="Could not run pm2"):
        await Pm2Client().start("1")


@pytest.mark.asyncio
async def test_session_always_disconnects_on_failure():
    supervisor = FakeSupervisor(fail=SupervisorError("boom"))

    with pytest.raises(SupervisorError):
        async with supervisor.session() as sv:
            await sv.list_processes()

    assert supervisor.disconnects == 1


# ---------------------------------------------------------------------------
# MCP backend
# ---------------------------------------------------------------------------

def _result(payload, is_error=False):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=json.dumps(payload))],
        structuredContent=None,
        isError=is_error,
    )


class _FakeMcpSession:
    def __init__(self, processes, responses=None):
        self.processes = processes
        self.responses = responses or {}
        self.calls = []

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if name == "list_processes":
            return _result({"count": len(self.processes), "processes": self.processes})
        return _result(self.responses.get(name, {"name": arguments["name"], "status": "running"}))


_DAEMON_PROCESSES = [
    {"name": "jake-bot", "command": "python", "args": ["-m", "jake_bot"], "cwd": "/srv/jake", "status": "running"},
    {"name": "db", "command": "postgres", "args": [], "cwd": "/srv/db", "status": "failed"},
]


def _mcp_client(session) -> McpProcessManagerClient:
    client = McpProcessManagerClient()
    client._session = session
    return client


def test_tool_payload_reads_json_text():
    assert tool_payload(_result({"count": 0, "processes": []})) == {"count": 0, "processes": []}


def test_tool_payload_falls_back_to_structured_content():
    result = SimpleNamespace(content=[], structuredContent={"result": {"status": "stopped"}}, isError=False)
    assert tool_payload(result) == {"status": "stopped"}


@pytest.mark.asyncio
async def test_mcp_list_uses_names_as_ids():
    snapshot = await _mcp_client(_FakeMcpSession(_DAEMON_PROCESSES)).list_processes()
    assert [(p.id, p.status) for p in snapshot] == [
        ("jake-bot", ProcessStatus.ONLINE),
        ("db", ProcessStatus.ERRORED),
    ]


@pytest.mark.asyncio
async def test_mcp_restart_is_stop_then_start_with_listed_command():
    session = _FakeMcpSession(_DAEMON_PROCESSES)

    await _mcp_client(session).restart("jake-bot")

    assert [name for name, _ in session.calls] == ["list_processes", "stop_process", "start_process"]
    assert session.calls[-1][1] == {
        "name": "jake-bot", "command": "python", "args": ["-m", "jake_bot"], "cwd": "/srv/jake",
    }


@pytest.mark.asyncio
async def test_mcp_unknown_process():
    with pytest.raises(SupervisorError, match="process not found"):
        await _mcp_client(_FakeMcpSession(_DAEMON_PROCESSES)).start("nope")


@pytest.mark.asyncio
async def test_mcp_tool_error_status_raises_detail():
    session = _FakeMcpSession(
        _DAEMON_PROCESSES,
        responses={"stop_process": {"name": "ghost", "status": "not_found", "error": "No process named 'ghost'"}},
    )

    with pytest.raises(SupervisorError) as excinfo:
        await _mcp_client(session).stop("ghost")

    assert excinfo.value.detail == "No process named 'ghost'"


@pytest.mark.asyncio
async def test_mcp_requires_connection():
    with pytest.raises(SupervisorError, match="not connected"):
        await McpProcessManagerClient().list_processes()


@pytest.mark.asyncio
async def test_mcp_disconnect_without_session_is_safe():
    await McpProcessManagerClient().disconnect()
