"""Shared fakes: a supervisor, a Discord channel and Discord interactions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import discord
import pytest

from pm2_panel.errors import SupervisorError
from pm2_panel.models import ProcessRecord, ProcessStatus
from pm2_panel.supervisor import SupervisorClient

CHANNEL_ID = 1234


def records(count: int, status: ProcessStatus = ProcessStatus.ONLINE) -> tuple[ProcessRecord, ...]:
    return tuple(ProcessRecord(id=str(i), name=f"proc-{i}", status=status) for i in range(count))


class FakeSupervisor(SupervisorClient):
    backend = "fake"

    def __init__(self, snapshot: tuple[ProcessRecord, ...] = (), *, fail: BaseException | None = None) -> None:
        self.snapshot = snapshot
        self.fail = fail
        self.calls: list[tuple[str, str]] = []
        self.connects = 0
        self.disconnects = 0

    async def connect(self) -> None:
        self.connects += 1

    async def disconnect(self) -> None:
        self.disconnects += 1

    async def list_processes(self):
        if self.fail is not None:
            raise self.fail
        return self.snapshot

    async def _command(self, op: str, process_id: str) -> None:
        self.calls.append((op, process_id))
        if self.fail is not None:
            raise self.fail

    async def start(self, process_id: str) -> None:
        await self._command("start", process_id)

    async def stop(self, process_id: str) -> None:
        await self._command("stop", process_id)

    async def restart(self, process_id: str) -> None:
        await self._command("restart", process_id)


class FakeMessage:
    _ids = 1000

    def __init__(self, channel: FakeChannel | None = None, created_at: datetime | None = None, **payload: Any) -> None:
        FakeMessage._ids += 1
        self.id = FakeMessage._ids
        self.channel = channel
        self.created_at = created_at or datetime.now(timezone.utc)
        self.payload = payload
        self.edits: list[dict[str, Any]] = []
        self.deleted = False

    async def edit(self, **payload: Any) -> None:
        if self.channel is not None:
            await self.channel.wait()
        if self.deleted:
            raise discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Message")
        self.edits.append(payload)


class FakeChannel:
    def __init__(self, history: list[FakeMessage] | None = None, *, channel_id: int = CHANNEL_ID) -> None:
        self.id = channel_id
        self.name = "pm2"
        self.messages = list(history or [])
        self.sent: list[FakeMessage] = []
        self.bulk_deletes: list[int] = []
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def wait(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

    def history(self, limit: int = 100):
        async def _iter():
            for message in list(self.messages[:limit]):
                yield message
        return _iter()

    async def delete_messages(self, messages: list[FakeMessage]) -> None:
        self.bulk_deletes.append(len(messages))
        for message in messages:
            message.deleted = True
            self.messages.remove(message)

    async def send(self, **payload: Any) -> FakeMessage:
        await self.wait()
        message = FakeMessage(self, **payload)
        self.sent.append(message)
        return message


class FakeResponse:
    def __init__(self, done: bool = False) -> None:
        self.done = done
        self.sent: list[dict[str, Any]] = []
        self.edits: list[dict[str, Any]] = []
        self.deferred = False

    def is_done(self) -> bool:
        return self.done

    async def send_message(self, content: str | None = None, **kwargs: Any) -> None:
        self.sent.append({"content": content, **kwargs})
        self.done = True

    async def edit_message(self, **kwargs: Any) -> None:
        self.edits.append(kwargs)
        self.done = True

    async def defer(self, **kwargs: Any) -> None:
        self.deferred = True
        self.done = True


class FakeFollowup:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send(self, content: str | None = None, **kwargs: Any) -> None:
        self.sent.append({"content": content, **kwargs})


def make_interaction(
    custom_id: str | None = None,
    *,
    values: list[str] | None = None,
    channel_id: int = CHANNEL_ID,
    command: bool = False,
    done: bool = False,
    message_content: str | None = None,
) -> SimpleNamespace:
    data: dict[str, Any] = {"name": "pm2"} if command else {"custom_id": custom_id}
    if values is not None:
        data["values"] = values
    return SimpleNamespace(
        type=(
            discord.InteractionType.application_command if command
            else discord.InteractionType.component
        ),
        data=data,
        channel_id=channel_id,
        user=SimpleNamespace(id=42),
        message=SimpleNamespace(content=message_content) if message_content is not None else None,
        response=FakeResponse(done=done),
        followup=FakeFollowup(),
    )


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor(records(3))


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def failing_supervisor() -> FakeSupervisor:
    return FakeSupervisor(fail=SupervisorError("process not found"))
