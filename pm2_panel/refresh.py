"""Refresh loop: periodically re-renders the live view from a fresh snapshot."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from .errors import RefreshCycleError, SupervisorError
from .live_view import LiveViewStore
from .models import SummaryView
from .renderer import render_summary, render_unavailable
from .supervisor import SupervisorClient

log = logging.getLogger(__name__)

REFRESH_INTERVAL = 30.0  # seconds


class RefreshPhase(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RENDERING = "rendering"
    PUBLISHING = "publishing"


class RefreshLoop:
    """Idle → Fetching → Rendering → Publishing → Idle, never overlapping.

    ``supervisor_factory`` returns a fresh client per cycle and
    ``to_payload`` turns a SummaryView into message kwargs (see
    ``discord_ui.summary_payload``).
    """

    def __init__(
        self,
        store: LiveViewStore,
        supervisor_factory: Callable[[], SupervisorClient],
        to_payload: Callable[[SummaryView], dict[str, Any]],
        *,
        interval: float = REFRESH_INTERVAL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.supervisor_factory = supervisor_factory
        self.to_payload = to_payload
        self.interval = interval
        self.clock = clock
        self.phase = RefreshPhase.IDLE
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def busy(self) -> bool:
        return self.phase is not RefreshPhase.IDLE

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def bind(self, channel: Any) -> None:
        """Clear ``channel``, publish the first live view and start ticking.

        If the supervisor is unreachable the first view says so; the next
        tick replaces it.  If the first publish fails the loop still starts
        and the next tick sends the message.
        """
        try:
            async with self.supervisor_factory().session() as sv:
                snapshot = await sv.list_processes()
            summary = render_summary(snapshot, self.clock())
        except SupervisorError as exc:
            log.error("Error loading initial PM2 list: %s", exc.detail)
            summary = render_unavailable(exc.detail, self.clock())
        except Exception as exc:
            log.exception("Error loading initial PM2 list")
            summary = render_unavailable(str(exc), self.clock())

        try:
            await self.store.bind_channel(channel, self.to_payload(summary))
        except Exception:
            log.exception("Error publishing initial PM2 list")
        finally:
            self.start()

    async def tick(self) -> bool:
        """Run one cycle unless one is already in flight.

        Returns False when the tick was skipped.  Failures are logged and
        never propagate.
        """
        if self.busy:
            log.debug("Refresh skipped: previous cycle still %s", self.phase.value)
            return False
        started = time.monotonic()
        try:
            await self._cycle()
        except RefreshCycleError as exc:
            log.error("Error updating PM2 list: %s", exc, exc_info=exc.cause)
        else:
            log.debug("Refreshed live view in %.0fms", (time.monotonic() - started) * 1000)
        return True

    def request_refresh(self) -> asyncio.Task[bool] | None:
        """Schedule an immediate out-of-band refresh (e.g. after an action)."""
        if self.busy or not self.store.is_bound:
            return None
        task = asyncio.create_task(self.tick(), name="pm2-panel-refresh-now")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run_forever(self) -> None:
        """Refresh every ``interval`` seconds, measured from the end of a cycle."""
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run_forever(), name="pm2-panel-refresh")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _cycle(self) -> None:
        try:
            self.phase = RefreshPhase.FETCHING
            async with self.supervisor_factory().session() as sv:
                snapshot = await sv.list_processes()

            self.phase = RefreshPhase.RENDERING
            payload = self.to_payload(render_summary(snapshot, self.clock()))

            self.phase = RefreshPhase.PUBLISHING
            await self.store.publish_or_update(payload)
        except Exception as exc:
            raise RefreshCycleError(self.phase.value, exc) from exc
        finally:
            self.phase = RefreshPhase.IDLE
