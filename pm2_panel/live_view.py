"""Live view store: owns the one persistent panel message per channel."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import discord

log = logging.getLogger(__name__)

# Discord only bulk-deletes messages younger than 14 days, 100 at a time
BULK_DELETE_MAX_AGE = timedelta(days=14)
BULK_DELETE_BATCH = 100


@dataclass
class LiveView:
    handle: Any  # discord.Message
    last_rendered_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveViewStore:
    """Single-writer owner of the live-view message handle.

    Every create-or-edit decision happens under one lock, so a refresh tick
    racing the initial bind can never produce two messages.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self._channel: Any = None  # discord.abc.Messageable
        self._live: LiveView | None = None

    @property
    def live_view(self) -> LiveView | None:
        return self._live

    @property
    def is_bound(self) -> bool:
        return self._channel is not None

    async def bind_channel(self, channel: Any, payload: dict[str, Any]) -> None:
        """Clear ``channel`` and publish the first live view into it.

        Binding the already-bound channel again just updates the view.
        """
        async with self._lock:
            if self._channel is not None and self._channel.id == channel.id:
                await self._publish_locked(payload)
                return
            self._channel = channel
            self._live = None
            await self._clear_channel(channel)
            await self._publish_locked(payload)

    async def publish_or_update(self, payload: dict[str, Any]) -> bool:
        """Edit the live view, or send it if there is none yet.

        Returns False without publishing while no channel is bound.
        """
        async with self._lock:
            if self._channel is None:
                log.debug("No channel bound yet, live view not published")
                return False
            await self._publish_locked(payload)
            return True

    async def _publish_locked(self, payload: dict[str, Any]) -> None:
        if self._live is not None:
            try:
                await self._live.handle.edit(**payload)
                self._live.last_rendered_at = self._clock()
                return
            except discord.NotFound:
                log.warning("Live view message was deleted, sending a new one")
                self._live = None

        message = await self._channel.send(**payload)
        self._live = LiveView(handle=message, last_rendered_at=self._clock())
        log.info("Published live view in channel %s", self._channel.id)

    async def _clear_channel(self, channel: Any) -> None:
        """Bulk-delete earlier messages so only the live view remains.

        Messages older than the bulk-delete horizon cannot be removed this way
        and are left in place.
        """
        try:
            while True:
                messages = [m async for m in channel.history(limit=BULK_DELETE_BATCH)]
                cutoff = self._clock() - BULK_DELETE_MAX_AGE
                deletable = [m for m in messages if m.created_at > cutoff]
                if deletable:
                    await channel.delete_messages(deletable)
                    log.info("Deleted %d messages in %s", len(deletable), getattr(channel, "name", channel.id))
                if len(messages) < 2 or len(deletable) < len(messages):
                    break
        except discord.HTTPException:
            log.exception("Error clearing channel %s", getattr(channel, "name", channel.id))
