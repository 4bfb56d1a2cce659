"""Interaction controller: the per-event state machine behind the panel.

Every inbound interaction is handled on its own: the action token is
decoded from the event, a fresh snapshot is taken when one is needed, and
exactly one reply goes back.  Nothing is shared between concurrent
interactions apart from the supervisor they command.

    open     → ephemeral page of processes (page 0)
    prev/next→ same ephemeral message, edited to the neighbouring page
    select   → ephemeral start/stop/restart buttons for one process
    start/stop/restart → supervisor call, ephemeral outcome message
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import discord

from .codec import ActionKind, ActionToken, decode, is_valid_target, parse_page_indicator
from .discord_ui import action_payload, page_payload
from .errors import DecodeError, MalformedToken, SupervisorError
from .models import ProcessSnapshot
from .renderer import render_action_choices, render_outcome, render_page
from .supervisor import SupervisorClient

log = logging.getLogger(__name__)

INVALID_ACTION = "Invalid action. Please try again."
GENERIC_FAILURE = "There was an issue processing the request. Please try again later."


def classify(interaction: Any) -> ActionToken:
    """Recover the ActionToken an interaction carries.

    Slash commands open the menu; components are decoded from their
    custom_id.  A select menu's token has no target of its own, the chosen
    option supplies it.  Raises ``DecodeError``.
    """
    if interaction.type == discord.InteractionType.application_command:
        return ActionToken(ActionKind.OPEN_MENU)

    data = interaction.data or {}
    token = decode(data.get("custom_id"))
    if token.kind is ActionKind.SELECT_PROCESS and token.target_id is None:
        values = data.get("values") or []
        if not values or not isinstance(values[0], str) or not is_valid_target(values[0]):
            raise MalformedToken(values, "select menu without a usable value")
        token = ActionToken(ActionKind.SELECT_PROCESS, target_id=values[0], page=token.page)
    return token


class _Responder:
    """Sends the one reply an interaction is entitled to, always ephemeral."""

    def __init__(self, interaction: Any) -> None:
        self.interaction = interaction
        self.sent = False

    async def defer(self) -> None:
        await self.interaction.response.defer()

    async def send(self, **payload: Any) -> None:
        if self.interaction.response.is_done():
            await self.interaction.followup.send(ephemeral=True, **payload)
        else:
            await self.interaction.response.send_message(ephemeral=True, **payload)
        self.sent = True

    async def edit(self, **payload: Any) -> None:
        await self.interaction.response.edit_message(**payload)
        self.sent = True


class InteractionController:
    def __init__(
        self,
        supervisor_factory: Callable[[], SupervisorClient],
        channel_id: int,
        *,
        on_action_done: Callable[[], object] | None = None,
    ) -> None:
        self.supervisor_factory = supervisor_factory
        self.channel_id = channel_id
        self.on_action_done = on_action_done

    async def handle(self, interaction: Any) -> None:
        """Entry point for every panel interaction.

        This is the single failure boundary: whatever goes wrong inside a
        handler, the user gets at most one reply.
        """
        started = time.monotonic()
        custom_id = (interaction.data or {}).get("custom_id", "N/A")

        if interaction.response.is_done():
            log.info(
                "Interaction already responded (custom_id: %s, user: %s)",
                custom_id, interaction.user.id,
            )
            return

        log.info(
            "Interaction received: custom_id=%s, user=%s, type=%s",
            custom_id, interaction.user.id, interaction.type,
        )
        reply = _Responder(interaction)
        try:
            await self._dispatch(interaction, reply)
        except Exception:
            log.exception(
                "Error processing interaction (duration: %.0fms, custom_id: %s, user: %s)",
                (time.monotonic() - started) * 1000, custom_id, interaction.user.id,
            )
            if reply.sent:
                return
            try:
                await reply.send(content=GENERIC_FAILURE)
            except Exception:
                log.exception("Error sending error response")
        else:
            log.info(
                "Interaction %s processed in %.0fms",
                custom_id, (time.monotonic() - started) * 1000,
            )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, interaction: Any, reply: _Responder) -> None:
        if interaction.channel_id != self.channel_id:
            await reply.send(content=f"This panel can only be used in <#{self.channel_id}>.")
            return

        try:
            token = classify(interaction)
        except DecodeError as exc:
            log.info("Invalid action (%s)", exc)
            await reply.send(content=INVALID_ACTION)
            return

        if token.kind is ActionKind.OPEN_MENU:
            await self._open_menu(reply)
        elif token.kind in (ActionKind.PAGINATE_PREV, ActionKind.PAGINATE_NEXT):
            await self._paginate(interaction, token, reply)
        elif token.kind is ActionKind.SELECT_PROCESS:
            await reply.send(**action_payload(render_action_choices(token.target_id)))
        else:
            await self._run_action(token, reply)

    async def _snapshot(self) -> ProcessSnapshot:
        async with self.supervisor_factory().session() as sv:
            return await sv.list_processes()

    async def _open_menu(self, reply: _Responder) -> None:
        try:
            snapshot = await self._snapshot()
        except SupervisorError as exc:
            log.error("Error loading process list: %s", exc.detail)
            await reply.send(content=f"Error loading process list: {exc.detail}")
            return
        await reply.send(**page_payload(render_page(snapshot, 0)))

    async def _paginate(self, interaction: Any, token: ActionToken, reply: _Responder) -> None:
        page = token.page
        if page is None:
            # Fall back to the indicator printed on the message being paged
            message = getattr(interaction, "message", None)
            try:
                page, _ = parse_page_indicator(getattr(message, "content", None))
            except DecodeError as exc:
                log.info("Cannot recover page (%s)", exc)
                await reply.send(content=INVALID_ACTION)
                return

        try:
            snapshot = await self._snapshot()
        except SupervisorError as exc:
            log.error("Error loading process list: %s", exc.detail)
            await reply.send(content=f"Error loading process list: {exc.detail}")
            return

        step = -1 if token.kind is ActionKind.PAGINATE_PREV else 1
        await reply.edit(**page_payload(render_page(snapshot, page + step)))

    async def _run_action(self, token: ActionToken, reply: _Responder) -> None:
        kind, target = token.kind, token.target_id
        await reply.defer()
        try:
            async with self.supervisor_factory().session() as sv:
                if kind is ActionKind.START:
                    await sv.start(target)
                elif kind is ActionKind.STOP:
                    await sv.stop(target)
                else:
                    await sv.restart(target)
        except SupervisorError as exc:
            log.error("Error during PM2 action %s for process %s: %s", kind.value, target, exc.detail)
            await reply.send(content=render_outcome(kind, target, False, exc.detail))
            return

        log.info("PM2 action %s for process %s successful", kind.value, target)
        await reply.send(content=render_outcome(kind, target, True))
        if self.on_action_done is not None:
            self.on_action_done()
