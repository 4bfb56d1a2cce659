"""Supervisor client contract shared by every process-manager backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..models import ProcessSnapshot

log = logging.getLogger(__name__)


class SupervisorClient(ABC):
    """Connect / list / start / stop / restart / disconnect.

    Every method raises ``SupervisorError`` on failure.  Callers should not
    pair ``connect`` and ``disconnect`` by hand; use ``session()``.
    """

    backend: str

    @abstractmethod
    async def connect(self) -> None:
        """Open a session.  Safe to call repeatedly."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the session.  Safe to call when nothing is open."""
        ...

    @abstractmethod
    async def list_processes(self) -> ProcessSnapshot:
        ...

    @abstractmethod
    async def start(self, process_id: str) -> None:
        ...

    @abstractmethod
    async def stop(self, process_id: str) -> None:
        ...

    @abstractmethod
    async def restart(self, process_id: str) -> None:
        ...

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SupervisorClient]:
        """Scope one logical operation: connect, yield, always disconnect."""
        try:
            await self.connect()
            yield self
        finally:
            try:
                await self.disconnect()
            except Exception:
                log.warning("Failed to disconnect from %s supervisor", self.backend, exc_info=True)
