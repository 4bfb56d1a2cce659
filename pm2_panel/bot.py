from __future__ import annotations

import logging

import discord
from discord import app_commands

from .config import Config
from .discord_ui import summary_payload
from .interactions import InteractionController
from .live_view import LiveViewStore
from .refresh import RefreshLoop

log = logging.getLogger(__name__)


class PanelBot(discord.Client):
    def __init__(self, config: Config) -> None:
        # Slash commands and components only need the guilds intent
        super().__init__(intents=discord.Intents.default())

        self.config = config
        self.tree = app_commands.CommandTree(self)

        supervisor_factory = config.supervisor_factory()
        self.store = LiveViewStore()
        self.refresher = RefreshLoop(self.store, supervisor_factory, summary_payload)
        self.controller = InteractionController(
            supervisor_factory,
            config.channel_id,
            on_action_done=self.refresher.request_refresh,
        )

        self._register_commands()

    def _register_commands(self) -> None:
        @self.tree.command(name="pm2", description="Start, stop or restart a PM2 process")
        async def cmd_pm2(interaction: discord.Interaction):
            await self.controller.handle(interaction)

    async def on_ready(self) -> None:
        log.info("Logged in as %s (ID: %s)", self.user, self.user.id)

        # on_ready fires again after every gateway reconnect
        if self.store.is_bound:
            self.refresher.start()
            return

        await self.tree.sync()
        log.info("Synced slash commands")

        channel_id = self.config.channel_id
        try:
            channel = self.get_channel(channel_id) or await self.fetch_channel(channel_id)
        except discord.HTTPException:
            log.exception("Could not fetch channel %s", channel_id)
            return

        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            log.error("PM2_CHANNEL_ID is invalid or not a text channel.")
            return

        await self.refresher.bind(channel)
        log.info("Live view bound to #%s, refreshing every %gs", channel.name, self.refresher.interval)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        # Slash commands arrive through the command tree instead
        if interaction.type is discord.InteractionType.component:
            await self.controller.handle(interaction)

    async def close(self) -> None:
        self.refresher.stop()
        await super().close()
